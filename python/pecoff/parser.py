"""
PE image decoding.

read_image walks the file front to back:

1. DOS header, DOS stub (up to e_lfanew), PE signature
2. COFF header, optional header with its 16 data directories
3. Section table at optional_header_start + SizeOfOptionalHeader, then the
   raw data of every section
4. Optional directories, each gated on its data directory and on the
   owning section being present:
   - resources from .rsrc
   - imports and load config from .rdata
   - exports and debug directory through the RVA converter
5. Non-zero bytes outside the headers and sections, then the overlay past
   the last section

Mandatory structures propagate every error. An optional directory whose
gate fails is left as None; errors raised once decoding has started
propagate unchanged.
"""

import logging
from pathlib import Path

from .errors import MalformedStructure
from .image import FileGap, Image
from .imports import ImportDirectory, read_import_directory
from .io import DataReader
from .resources import ResourceDirectory, read_resource_directory
from .sections import SectionTable, read_sections
from .types import (
    CoffHeader,
    DataDirectory,
    DebugDirectory,
    DosHeader,
    ExportDirectoryTable,
    LoadConfigDirectory,
    OptionalHeader,
    OPTIONAL_HEADER_SIZE,
    SECTION_HEADER_SIZE,
)

logger = logging.getLogger(__name__)

SECTION_RESOURCES = ".rsrc"
SECTION_READONLY_DATA = ".rdata"


# =============================================================================
# Header decoders
# =============================================================================


def read_dos_header(reader: DataReader) -> DosHeader:
    return DosHeader.from_reader(reader)


def read_stub(header: DosHeader, reader: DataReader) -> bytes:
    """Read the DOS stub: everything from the cursor up to e_lfanew."""
    size = header.e_lfanew - reader.position
    if size < 0:
        raise MalformedStructure(
            f"PE header offset 0x{header.e_lfanew:x} lies inside the DOS header"
        )
    return reader.read_fixed_string(size)


def read_signature(reader: DataReader) -> bytes:
    return reader.read_fixed_string(4)


def read_coff_header(reader: DataReader) -> CoffHeader:
    return CoffHeader.from_reader(reader)


def read_optional_header(reader: DataReader) -> OptionalHeader:
    return OptionalHeader.from_reader(reader)


def read_data_directory(reader: DataReader) -> DataDirectory:
    return DataDirectory.from_reader(reader)


def read_load_config_directory(reader: DataReader) -> LoadConfigDirectory:
    return LoadConfigDirectory.from_reader(reader)


def read_export_directory_table(reader: DataReader) -> ExportDirectoryTable:
    return ExportDirectoryTable.from_reader(reader)


def read_debug_directory(reader: DataReader) -> DebugDirectory:
    return DebugDirectory.from_reader(reader)


# =============================================================================
# Optional directories
# =============================================================================


def _section_offset(
    sections: SectionTable, name: str, rva: int
) -> tuple[bytes, int, int] | None:
    """Locate an RVA inside a named section's bytes.

    Returns (section bytes, section VirtualAddress, offset) or None when the
    section is absent or the offset falls outside its bytes.
    """
    data = sections.section_bytes(name)
    header = sections.get_section(name)
    if data is None or header is None:
        return None
    offset = rva - header.VirtualAddress
    if offset < 0 or offset >= len(data):
        return None
    return data, header.VirtualAddress, offset


def _file_offset(
    reader: DataReader, sections: SectionTable, directory: DataDirectory, size: int
) -> int | None:
    """File offset of a data directory, or None if size bytes do not fit there."""
    if directory.Size == 0 or directory.VirtualAddress == 0:
        return None
    addresses = sections.rva_converter.virtual_addresses
    if not addresses or directory.VirtualAddress < addresses[0]:
        return None
    offset = sections.rva_to_offset(directory.VirtualAddress)
    if offset + size > len(reader):
        return None
    return offset


def read_resources(
    optional_header: OptionalHeader, sections: SectionTable
) -> ResourceDirectory | None:
    """Decode the resource tree if .rsrc exists and the directory is non-empty."""
    data = sections.section_bytes(SECTION_RESOURCES)
    resource_table = optional_header.resource_table
    if data is None or resource_table.Size == 0:
        logger.debug("No resource directory")
        return None
    return read_resource_directory(data, resource_table.VirtualAddress)


def read_imports(
    optional_header: OptionalHeader, sections: SectionTable
) -> ImportDirectory | None:
    """Decode the import directory if it lies inside .rdata."""
    import_table = optional_header.import_table
    if import_table.VirtualAddress == 0:
        logger.debug("No import directory")
        return None
    located = _section_offset(sections, SECTION_READONLY_DATA, import_table.VirtualAddress)
    if located is None:
        logger.debug(
            "Import directory at RVA 0x%x is outside %s, skipping",
            import_table.VirtualAddress,
            SECTION_READONLY_DATA,
        )
        return None
    data, base_address, _ = located
    return read_import_directory(data, base_address, import_table.VirtualAddress)


def read_load_config(
    optional_header: OptionalHeader, sections: SectionTable
) -> LoadConfigDirectory | None:
    """Decode the load config directory if it lies inside .rdata."""
    load_config_table = optional_header.load_config_table
    if load_config_table.Size == 0:
        return None
    located = _section_offset(
        sections, SECTION_READONLY_DATA, load_config_table.VirtualAddress
    )
    if located is None:
        logger.debug(
            "Load config at RVA 0x%x is outside %s, skipping",
            load_config_table.VirtualAddress,
            SECTION_READONLY_DATA,
        )
        return None
    data, _, offset = located
    return read_load_config_directory(DataReader(data, offset))


def read_exports(
    reader: DataReader, optional_header: OptionalHeader, sections: SectionTable
) -> ExportDirectoryTable | None:
    """Decode the export directory table and resolve the DLL name."""
    offset = _file_offset(
        reader, sections, optional_header.export_table, ExportDirectoryTable.SIZE
    )
    if offset is None:
        return None
    reader.seek(offset)
    table = read_export_directory_table(reader)
    if table.NameRVA >= sections.rva_converter.virtual_addresses[0]:
        name_offset = sections.rva_to_offset(table.NameRVA)
        if name_offset < len(reader):
            reader.seek(name_offset)
            table.name = reader.read_null_terminated_string()
    return table


def read_debug_directories(
    reader: DataReader, optional_header: OptionalHeader, sections: SectionTable
) -> list[DebugDirectory] | None:
    """Decode the debug directory entries (bookkeeping only)."""
    debug = optional_header.debug
    count = debug.Size // DebugDirectory.SIZE
    if count == 0:
        return None
    offset = _file_offset(reader, sections, debug, count * DebugDirectory.SIZE)
    if offset is None:
        return None
    reader.seek(offset)
    return [read_debug_directory(reader) for _ in range(count)]


# =============================================================================
# Entry points
# =============================================================================


def read_gaps(
    reader: DataReader,
    covered: list[tuple[int, int]],
    sections: SectionTable,
    data_end: int,
) -> list[FileGap]:
    """Collect the non-zero bytes in [0, data_end) outside every covered range.

    covered lists the header ranges; section raw data is added to it. Ranges
    that are entirely zero are dropped since reassembly zero-fills them.
    """
    ranges = covered + [
        (h.PointerToRawData, h.end_file_offset)
        for h in sections.headers
        if h.has_raw_data
    ]
    gaps = []
    cursor = 0
    for start, end in sorted(ranges) + [(data_end, data_end)]:
        if start > cursor:
            chunk = reader.data[cursor:start]
            if chunk.strip(b"\x00"):
                logger.debug("Keeping %d uncovered bytes at 0x%x", len(chunk), cursor)
                gaps.append(FileGap(offset=cursor, data=chunk))
        cursor = max(cursor, end)
    return gaps


def read_image(reader: DataReader) -> Image:
    """Decode a complete PE image from a reader positioned at offset 0.

    Raises:
        TruncatedInput: If a mandatory structure runs past the input
        OutOfBoundsOffset: If a mandatory seek leaves the input
        MalformedStructure: If a decoded invariant is violated
    """
    dos_header = read_dos_header(reader)
    stub = read_stub(dos_header, reader)
    signature = read_signature(reader)
    coff_header = read_coff_header(reader)
    optional_start = reader.position
    optional_header = read_optional_header(reader)
    reader.seek(optional_start + coff_header.SizeOfOptionalHeader)
    sections = read_sections(coff_header.NumberOfSections, reader)

    image = Image(
        dos_header=dos_header,
        stub=stub,
        signature=signature,
        coff_header=coff_header,
        optional_header=optional_header,
        section_table=sections,
    )

    image.resource_directory = read_resources(optional_header, sections)
    image.import_directory = read_imports(optional_header, sections)
    image.load_config_directory = read_load_config(optional_header, sections)
    image.export_directory = read_exports(reader, optional_header, sections)
    image.debug_directories = read_debug_directories(reader, optional_header, sections)

    headers_end = (
        optional_start
        + coff_header.SizeOfOptionalHeader
        + coff_header.NumberOfSections * SECTION_HEADER_SIZE
    )
    data_end = max(sections.end_of_raw_data, headers_end)
    covered = [
        (0, optional_start + OPTIONAL_HEADER_SIZE),
        (optional_start + coff_header.SizeOfOptionalHeader, headers_end),
    ]
    image.gaps = read_gaps(reader, covered, sections, data_end)
    if data_end < len(reader):
        image.overlay = reader.data[data_end:]

    logger.debug(
        "Decoded image: %d sections, entry point 0x%x",
        len(sections),
        optional_header.AddressOfEntryPoint,
    )
    return image


def parse_bytes(data: bytes | bytearray) -> Image:
    """Decode a PE image held in memory."""
    return read_image(DataReader(data))


def parse_file(path: Path) -> Image:
    """Decode a PE image from a file.

    Args:
        path: Path to an .exe or .dll

    Returns:
        Decoded Image
    """
    return parse_bytes(Path(path).read_bytes())
