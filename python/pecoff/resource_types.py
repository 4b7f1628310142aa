"""
Resource payload records: version info, palette entries and icon directories.

These are the structures found inside resource payloads rather than in
the resource tree itself. Each has a decoder here and an encoder in
pecoff.assembler that writes the same field sequence.
"""

import struct
from dataclasses import dataclass
from typing import ClassVar

from .errors import MalformedStructure
from .io import DataReader
from .types import Structure, derived

VS_FFI_SIGNATURE = 0xFEEF04BD
VS_FFI_STRUCVERSION = 0x00010000


@dataclass
class FixedFileInfo(Structure):
    """VS_FIXEDFILEINFO block of an RT_VERSION resource."""

    Signature: int
    StrucVersion: int
    FileVersionMS: int
    FileVersionLS: int
    ProductVersionMS: int
    ProductVersionLS: int
    FileFlagsMask: int
    FileFlags: int
    FileOS: int
    FileType: int
    FileSubtype: int
    FileDateMS: int
    FileDateLS: int

    STRUCT_FMT: ClassVar[str] = "<" + "I" * 13
    SIZE: ClassVar[int] = 52

    @property
    def file_version(self) -> tuple[int, int, int, int]:
        """File version as (major, minor, build, revision)."""
        return (
            self.FileVersionMS >> 16,
            self.FileVersionMS & 0xFFFF,
            self.FileVersionLS >> 16,
            self.FileVersionLS & 0xFFFF,
        )

    @property
    def product_version(self) -> tuple[int, int, int, int]:
        """Product version as (major, minor, build, revision)."""
        return (
            self.ProductVersionMS >> 16,
            self.ProductVersionMS & 0xFFFF,
            self.ProductVersionLS >> 16,
            self.ProductVersionLS & 0xFFFF,
        )


@dataclass
class RGBQuad(Structure):
    """RGBQUAD palette entry. Stored blue first, not red first."""

    Blue: int
    Green: int
    Red: int
    Reserved: int

    STRUCT_FMT: ClassVar[str] = "<BBBB"
    SIZE: ClassVar[int] = 4


@dataclass
class IconDirectoryEntry(Structure):
    """ICONDIRENTRY of an .ico file."""

    Width: int  # 0 means 256
    Height: int  # 0 means 256
    ColorCount: int
    Reserved: int
    Planes: int
    BitCount: int
    BytesInRes: int
    ImageOffset: int

    STRUCT_FMT: ClassVar[str] = "<BBBBHHII"
    SIZE: ClassVar[int] = 16


@dataclass
class IconDirectory(Structure):
    """ICONDIR header followed by Count entries."""

    Reserved: int
    Type: int  # 1 for icons, 2 for cursors
    Count: int
    entries: list[IconDirectoryEntry] = derived(default_factory=list)

    STRUCT_FMT: ClassVar[str] = "<HHH"
    SIZE: ClassVar[int] = 6


def read_fixed_file_info(reader: DataReader) -> FixedFileInfo:
    return FixedFileInfo.from_reader(reader)


def read_rgb_quad(reader: DataReader) -> RGBQuad:
    return RGBQuad.from_reader(reader)


def read_icon_directory_entry(reader: DataReader) -> IconDirectoryEntry:
    return IconDirectoryEntry.from_reader(reader)


def read_icon_directory(reader: DataReader) -> IconDirectory:
    """Read an icon directory header and its Count entries."""
    directory = IconDirectory.from_reader(reader)
    directory.entries = [read_icon_directory_entry(reader) for _ in range(directory.Count)]
    return directory


def find_fixed_file_info(payload: bytes) -> FixedFileInfo:
    """Locate and decode the VS_FIXEDFILEINFO block inside an RT_VERSION payload.

    The block follows a variable-length UTF-16 key, so it is found by its
    signature rather than by a fixed offset.

    Raises:
        MalformedStructure: If the payload has no fixed file info signature
    """
    offset = payload.find(struct.pack("<I", VS_FFI_SIGNATURE))
    if offset < 0:
        raise MalformedStructure("No VS_FIXEDFILEINFO signature in version resource")
    return read_fixed_file_info(DataReader(payload, offset))
