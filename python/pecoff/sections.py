"""
Section table loading and RVA translation.

Section raw data is loaded by visiting headers in ascending
PointerToRawData order, so a section table whose declaration order does not
match the file layout is still read front to back. The RVA converter is
built from the same headers sorted by VirtualAddress.
"""

import bisect
import logging
from dataclasses import dataclass, field
from typing import Iterator

from .errors import MalformedStructure, OutOfBoundsOffset
from .io import DataReader
from .types import SectionHeader

logger = logging.getLogger(__name__)

# Reasonable limit for PE structures to prevent DoS from malformed files
MAX_NUMBER_OF_SECTIONS = 256


@dataclass
class RVAConverter:
    """Maps RVAs to file offsets using two parallel ascending arrays.

    An RVA resolves against the section with the greatest VirtualAddress
    not above it; the distance from that address is added to the section's
    raw-data pointer.
    """

    virtual_addresses: list[int] = field(default_factory=list)
    pointers_to_raw_data: list[int] = field(default_factory=list)

    @classmethod
    def from_sections(cls, sections: list[SectionHeader]) -> "RVAConverter":
        """Build a converter from section headers in any order."""
        ordered = sorted(sections, key=lambda s: s.VirtualAddress)
        return cls(
            virtual_addresses=[s.VirtualAddress for s in ordered],
            pointers_to_raw_data=[s.PointerToRawData for s in ordered],
        )

    def rva_to_offset(self, rva: int) -> int:
        """Convert an RVA to a file offset.

        Raises:
            OutOfBoundsOffset: If the RVA precedes the first section
        """
        index = bisect.bisect_right(self.virtual_addresses, rva) - 1
        if index < 0:
            raise OutOfBoundsOffset(f"RVA 0x{rva:x} precedes the first section")
        return self.pointers_to_raw_data[index] + (rva - self.virtual_addresses[index])


@dataclass
class SectionTable:
    """Section headers in declaration order plus their loaded raw bytes."""

    headers: list[SectionHeader] = field(default_factory=list)
    data: dict[str, bytes] = field(default_factory=dict)
    rva_converter: RVAConverter = field(default_factory=RVAConverter)

    def __len__(self) -> int:
        return len(self.headers)

    def __iter__(self) -> Iterator[SectionHeader]:
        return iter(self.headers)

    def get_section(self, name: str) -> SectionHeader | None:
        """Find a section header by name."""
        for header in self.headers:
            if header.name_str == name:
                return header
        return None

    def section_bytes(self, name: str) -> bytes | None:
        """Raw bytes of a section, or None if it has no data in the file."""
        return self.data.get(name)

    def put_section(self, name: str, data: bytes) -> None:
        self.data[name] = data

    def rva_to_offset(self, rva: int) -> int:
        return self.rva_converter.rva_to_offset(rva)

    def find_section_for_rva(self, rva: int) -> SectionHeader | None:
        """Find the section whose virtual range contains an RVA."""
        for header in self.headers:
            if header.contains_rva(rva):
                return header
        return None

    @property
    def end_of_raw_data(self) -> int:
        """File offset just past the last section's raw data."""
        ends = [h.end_file_offset for h in self.headers if h.has_raw_data]
        return max(ends, default=0)


def read_sections(count: int, reader: DataReader) -> SectionTable:
    """Read count section headers at the cursor and load their raw data.

    Args:
        count: Number of section headers (COFF NumberOfSections)
        reader: Reader over the whole image, positioned at the section table

    Returns:
        SectionTable with headers, raw bytes and RVA converter

    Raises:
        MalformedStructure: If count exceeds MAX_NUMBER_OF_SECTIONS
        TruncatedInput: If a header or section body runs past the input
    """
    if count > MAX_NUMBER_OF_SECTIONS:
        raise MalformedStructure(
            f"NumberOfSections ({count}) exceeds maximum ({MAX_NUMBER_OF_SECTIONS})"
        )

    table = SectionTable()
    for _ in range(count):
        table.headers.append(SectionHeader.from_reader(reader))

    for header in sorted(table.headers, key=lambda h: h.PointerToRawData):
        if not header.has_raw_data:
            logger.debug("Section %s has no raw data", header.name_str)
            continue
        reader.seek(header.PointerToRawData)
        table.put_section(header.name_str, reader.read_fixed_string(header.SizeOfRawData))

    table.rva_converter = RVAConverter.from_sections(table.headers)
    logger.debug(
        "Loaded %d sections (%d with raw data)", len(table.headers), len(table.data)
    )
    return table
