"""
Import directory decoding.

The import directory is an array of 20-byte descriptors terminated by one
whose ImportLookupTableRVA is zero. Each descriptor names a module and
points to a lookup table of 32-bit values, itself zero-terminated. A value
with bit 31 set imports by ordinal (low 31 bits); otherwise it is the RVA
of a hint word followed by a NUL-terminated symbol name.

All RVAs are resolved inside the .rdata section bytes by subtracting the
section's VirtualAddress. The import address table RVA is recorded but its
contents are not decoded.
"""

import logging
from dataclasses import dataclass, field
from typing import ClassVar, Iterator

from .io import DataReader
from .types import Structure, derived

logger = logging.getLogger(__name__)

IMPORT_DIRECTORY_ENTRY_SIZE = 20
IMPORT_BY_ORDINAL_FLAG = 0x80000000


@dataclass
class ImportEntry:
    """One resolved lookup table value."""

    value: int  # Raw 32-bit lookup table value
    ordinal: int | None = None
    hint: int | None = None
    name: str | None = None

    @property
    def is_ordinal(self) -> bool:
        return bool(self.value & IMPORT_BY_ORDINAL_FLAG)


@dataclass
class ImportDirectoryEntry(Structure):
    """Import directory descriptor (IMAGE_IMPORT_DESCRIPTOR)."""

    ImportLookupTableRVA: int
    TimeDateStamp: int
    ForwarderChain: int
    NameRVA: int
    ImportAddressTableRVA: int
    name: str | None = derived()
    lookup_table: list[ImportEntry] = derived(default_factory=list)

    STRUCT_FMT: ClassVar[str] = "<IIIII"
    SIZE: ClassVar[int] = IMPORT_DIRECTORY_ENTRY_SIZE


@dataclass
class ImportDirectory:
    """Import descriptors in file order, sentinel excluded."""

    entries: list[ImportDirectoryEntry] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[ImportDirectoryEntry]:
        return iter(self.entries)

    def get_entry(self, name: str) -> ImportDirectoryEntry | None:
        """Find a descriptor by module name (case-insensitive)."""
        wanted = name.lower()
        for entry in self.entries:
            if entry.name is not None and entry.name.lower() == wanted:
                return entry
        return None

    @property
    def module_names(self) -> list[str]:
        return [entry.name for entry in self.entries]


def read_import_directory_entry(reader: DataReader) -> ImportDirectoryEntry | None:
    """Read one descriptor; None for the zero-lookup-table sentinel."""
    entry = ImportDirectoryEntry.from_reader(reader)
    if entry.ImportLookupTableRVA == 0:
        return None
    return entry


def read_import_table(reader: DataReader, base_address: int) -> list[ImportEntry]:
    """Read a zero-terminated lookup table at the cursor and resolve its values.

    Args:
        reader: Reader over the .rdata bytes, positioned at the table
        base_address: VirtualAddress of the .rdata section
    """
    entries = []
    while True:
        value = reader.read_doubleword()
        if value == 0:
            break
        entries.append(ImportEntry(value=value))

    for entry in entries:
        if entry.is_ordinal:
            entry.ordinal = entry.value & 0x7FFFFFFF
        else:
            reader.seek(entry.value - base_address)
            entry.hint = reader.read_word()
            entry.name = reader.read_null_terminated_string()
    return entries


def read_import_directory(
    data: bytes, base_address: int, import_table_rva: int
) -> ImportDirectory:
    """Decode the import directory from .rdata section bytes.

    Args:
        data: Raw bytes of the .rdata section
        base_address: VirtualAddress of the .rdata section
        import_table_rva: VirtualAddress of the import data directory

    Returns:
        ImportDirectory with module names and lookup tables resolved

    Raises:
        OutOfBoundsOffset: If a name or table RVA lies outside data
        TruncatedInput: If a table runs off the end of data
    """
    reader = DataReader(data, import_table_rva - base_address)
    directory = ImportDirectory()
    while True:
        entry = read_import_directory_entry(reader)
        if entry is None:
            break
        directory.entries.append(entry)

    for entry in directory.entries:
        reader.seek(entry.NameRVA - base_address)
        entry.name = reader.read_null_terminated_string()
        reader.seek(entry.ImportLookupTableRVA - base_address)
        entry.lookup_table = read_import_table(reader, base_address)
        logger.debug(
            "Resolved %d imports from %s", len(entry.lookup_table), entry.name
        )
    return directory
