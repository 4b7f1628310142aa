"""
Root object of a decoded PE image.
"""

from dataclasses import dataclass, field

from .imports import ImportDirectory
from .resources import ResourceDirectory
from .sections import SectionTable
from .types import (
    CoffHeader,
    DebugDirectory,
    DosHeader,
    ExportDirectoryTable,
    LoadConfigDirectory,
    OptionalHeader,
    SectionHeader,
)


@dataclass
class FileGap:
    """File bytes that no header or section covers, such as header slack."""

    offset: int
    data: bytes


@dataclass
class Image:
    """A decoded PE image.

    Mandatory headers are always present. The optional directories are
    None when the image does not carry them or when their location is
    implausible.

    Usage:
        image = parse_file(Path("foo.dll"))
        for entry in image.import_directory or []:
            print(entry.name)
    """

    dos_header: DosHeader
    stub: bytes
    signature: bytes
    coff_header: CoffHeader
    optional_header: OptionalHeader
    section_table: SectionTable
    resource_directory: ResourceDirectory | None = None
    import_directory: ImportDirectory | None = None
    load_config_directory: LoadConfigDirectory | None = None
    export_directory: ExportDirectoryTable | None = None
    debug_directories: list[DebugDirectory] | None = None
    overlay: bytes = b""  # Bytes past the last section's raw data
    gaps: list[FileGap] = field(default_factory=list)  # Non-zero uncovered ranges

    @property
    def entry_point(self) -> int:
        """RVA of the entry point."""
        return self.optional_header.AddressOfEntryPoint

    @property
    def is_dll(self) -> bool:
        return self.coff_header.is_dll

    @property
    def sections(self) -> list[SectionHeader]:
        """Section headers in declaration order."""
        return self.section_table.headers

    def get_section(self, name: str) -> SectionHeader | None:
        return self.section_table.get_section(name)

    def section_bytes(self, name: str) -> bytes | None:
        return self.section_table.section_bytes(name)

    def rva_to_offset(self, rva: int) -> int:
        return self.section_table.rva_to_offset(rva)
