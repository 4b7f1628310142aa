"""
PE format detection utilities.

The decoders read whatever bytes they are given; these helpers let callers
check up front that a buffer or file looks like a PE image.
"""

from pathlib import Path

from .types import DOS_HEADER_SIZE, PE_SIGNATURE, PE_SIGNATURE_OFFSET_LOCATION

DOS_MAGIC_BYTES = b"MZ"
MAX_PE_HEADER_OFFSET = 0x100000


class UnsupportedBinaryFormat(ValueError):
    """Raised when a binary is not a PE/COFF image."""

    pass


def check_pe_format(data: bytes | bytearray) -> None:
    """Check the MZ magic, e_lfanew and PE signature of an image.

    Raises:
        UnsupportedBinaryFormat: If data is not a PE image
    """
    if len(data) < DOS_HEADER_SIZE:
        raise UnsupportedBinaryFormat(
            f"Data too small to be a PE image: {len(data)} bytes"
        )

    if data[:2] != DOS_MAGIC_BYTES:
        raise UnsupportedBinaryFormat(f"Missing MZ magic: {bytes(data[:2])!r}")

    pe_offset = int.from_bytes(
        data[PE_SIGNATURE_OFFSET_LOCATION : PE_SIGNATURE_OFFSET_LOCATION + 4], "little"
    )
    # Validate PE offset is reasonable (past the DOS header, within first 1MB)
    if pe_offset < DOS_HEADER_SIZE or pe_offset > MAX_PE_HEADER_OFFSET:
        raise UnsupportedBinaryFormat(f"Invalid PE header offset {pe_offset:#x}")

    signature = bytes(data[pe_offset : pe_offset + 4])
    if signature != PE_SIGNATURE:
        raise UnsupportedBinaryFormat(f"Invalid PE signature: {signature!r}")


def is_pe_data(data: bytes | bytearray) -> bool:
    """Check if a buffer holds a PE image."""
    try:
        check_pe_format(data)
    except UnsupportedBinaryFormat:
        return False
    return True


def is_pe_binary(path: Path) -> bool:
    """Check if a file is a PE image.

    Args:
        path: Path to binary file

    Returns:
        True if PE/COFF, False otherwise (including missing files)
    """
    try:
        data = Path(path).read_bytes()
    except FileNotFoundError:
        return False
    return is_pe_data(data)
