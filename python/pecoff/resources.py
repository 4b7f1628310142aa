"""
Resource directory tree decoding.

The resource section is a fixed four-level tree:

    root directory      entries keyed by resource type
      type directory    entries keyed by resource name
        name directory  entries keyed by language
          data entry    RVA, size and code page of the payload

Every directory starts with a 16-byte table header followed by its named
entries and then its id entries. Named entries are kept as pointers but
never followed; only id-keyed entries have subtrees.

Pointer offsets are relative to the start of the resource section bytes.
Data entry offsets are RVAs and are rebased against the resource data
directory's VirtualAddress.
"""

import logging
from dataclasses import dataclass, field
from typing import ClassVar, Iterator

from .errors import MalformedResourceTree, OutOfBoundsOffset, TruncatedInput
from .io import DataReader
from .types import Structure, derived

logger = logging.getLogger(__name__)

# Resource types
RT_CURSOR = 1
RT_BITMAP = 2
RT_ICON = 3
RT_MENU = 4
RT_DIALOG = 5
RT_STRING = 6
RT_FONTDIR = 7
RT_FONT = 8
RT_ACCELERATOR = 9
RT_RCDATA = 10
RT_MESSAGETABLE = 11
RT_GROUP_CURSOR = 12
RT_GROUP_ICON = 14
RT_VERSION = 16
RT_MANIFEST = 24

# Tree levels; the data entries sit one level below LEVEL_NAME
LEVEL_ROOT = 0
LEVEL_TYPE = 1
LEVEL_NAME = 2
RESOURCE_TREE_DEPTH = 4

RESOURCE_DIRECTORY_TABLE_SIZE = 16
RESOURCE_POINTER_SIZE = 8
RESOURCE_DATA_ENTRY_SIZE = 16

HIGH_BIT = 0x80000000

# Entries visited while walking one tree; shared subdirectories count once per visit
MAX_RESOURCE_ENTRIES = 0x10000


@dataclass
class ResourceDirectoryTable(Structure):
    """Resource directory table header (IMAGE_RESOURCE_DIRECTORY)."""

    Characteristics: int
    TimeDateStamp: int
    MajorVersion: int
    MinorVersion: int
    NumberOfNamedEntries: int
    NumberOfIdEntries: int

    STRUCT_FMT: ClassVar[str] = "<IIHHHH"
    SIZE: ClassVar[int] = RESOURCE_DIRECTORY_TABLE_SIZE

    @property
    def entry_count(self) -> int:
        return self.NumberOfNamedEntries + self.NumberOfIdEntries


@dataclass
class ResourcePointer(Structure):
    """Resource directory entry (IMAGE_RESOURCE_DIRECTORY_ENTRY).

    OffsetToData has bit 31 masked off; the bit itself is kept in
    is_directory so the entry can be written back unchanged.
    """

    Name: int  # Integer id, or (bit 31 set) offset of a name string
    OffsetToData: int
    is_directory: bool = derived(default=False)

    STRUCT_FMT: ClassVar[str] = "<II"
    SIZE: ClassVar[int] = RESOURCE_POINTER_SIZE

    @classmethod
    def from_reader(cls, reader: DataReader) -> "ResourcePointer":
        name, offset = reader.unpack(cls.STRUCT_FMT)
        return cls(
            Name=name,
            OffsetToData=offset & ~HIGH_BIT,
            is_directory=bool(offset & HIGH_BIT),
        )

    def values(self) -> tuple:
        offset = self.OffsetToData | (HIGH_BIT if self.is_directory else 0)
        return (self.Name, offset)

    @property
    def is_named(self) -> bool:
        return bool(self.Name & HIGH_BIT)

    @property
    def id(self) -> int:
        return self.Name & 0xFFFF


@dataclass
class ResourceDataEntry(Structure):
    """Resource data entry (IMAGE_RESOURCE_DATA_ENTRY) and its payload."""

    OffsetToData: int  # RVA of the payload
    Size: int
    CodePage: int
    Reserved: int
    data: bytes | None = derived()

    STRUCT_FMT: ClassVar[str] = "<IIII"
    SIZE: ClassVar[int] = RESOURCE_DATA_ENTRY_SIZE

    def depth(self) -> int:
        return 1


@dataclass
class ResourceEntry:
    """A directory entry together with the subtree it owns.

    child is None for named entries, which are not followed.
    """

    pointer: ResourcePointer
    child: "ResourceDirectory | ResourceDataEntry | None" = None


@dataclass
class ResourceDirectory:
    """One directory level of the resource tree."""

    level: int
    table: ResourceDirectoryTable
    entries: list[ResourceEntry] = field(default_factory=list)

    def depth(self) -> int:
        """Number of levels from this directory down to the data entries."""
        children = [e.child for e in self.entries if e.child is not None]
        if not children:
            return 1
        return 1 + max(child.depth() for child in children)

    @property
    def id_entries(self) -> list[ResourceEntry]:
        return [e for e in self.entries if e.child is not None]

    def iter_data_entries(self) -> Iterator[tuple[tuple[int, ...], ResourceDataEntry]]:
        """Yield (id path, data entry) for every leaf under this directory.

        For the root the path is (type id, name id, language id).
        """
        for entry in self.id_entries:
            if isinstance(entry.child, ResourceDataEntry):
                yield (entry.pointer.id,), entry.child
            else:
                for path, leaf in entry.child.iter_data_entries():
                    yield (entry.pointer.id,) + path, leaf

    def find(
        self,
        type_id: int,
        name_id: int | None = None,
        language_id: int | None = None,
    ) -> list[ResourceDataEntry]:
        """Find data entries by type and optionally name and language id."""
        found = []
        for (t, n, lang), leaf in self.iter_data_entries():
            if t != type_id:
                continue
            if name_id is not None and n != name_id:
                continue
            if language_id is not None and lang != language_id:
                continue
            found.append(leaf)
        return found


@dataclass
class _TreeWalk:
    reader: DataReader
    resource_table_rva: int
    entries_visited: int = 0


def read_resource_directory(data: bytes, resource_table_rva: int) -> ResourceDirectory:
    """Decode the resource tree from the resource section bytes.

    Args:
        data: Raw bytes of the .rsrc section
        resource_table_rva: VirtualAddress of the resource data directory,
            used to rebase data entry RVAs into data

    Returns:
        Root ResourceDirectory

    Raises:
        MalformedResourceTree: If an offset points outside data or a
            subdirectory flag disagrees with the tree level. Also raised
            when the walk visits more than MAX_RESOURCE_ENTRIES entries.
    """
    walk = _TreeWalk(DataReader(data), resource_table_rva)
    try:
        return _read_directory(walk, LEVEL_ROOT)
    except (OutOfBoundsOffset, TruncatedInput) as e:
        raise MalformedResourceTree(f"Resource tree outside .rsrc data: {e}") from e


def _read_directory(walk: _TreeWalk, level: int) -> ResourceDirectory:
    reader = walk.reader
    table = ResourceDirectoryTable.from_reader(reader)
    walk.entries_visited += table.entry_count
    if walk.entries_visited > MAX_RESOURCE_ENTRIES:
        raise MalformedResourceTree(
            f"Resource tree exceeds {MAX_RESOURCE_ENTRIES} entries"
        )

    pointers = [ResourcePointer.from_reader(reader) for _ in range(table.entry_count)]
    directory = ResourceDirectory(level=level, table=table)

    for pointer in pointers:
        if pointer.is_named:
            logger.debug(
                "Skipping named resource entry 0x%x at level %d", pointer.Name, level
            )
            directory.entries.append(ResourceEntry(pointer))
            continue

        expects_directory = level < LEVEL_NAME
        if pointer.is_directory != expects_directory:
            raise MalformedResourceTree(
                f"Resource entry {pointer.id} at level {level} "
                f"{'lacks' if expects_directory else 'has'} a subdirectory flag"
            )

        reader.seek(pointer.OffsetToData)
        if expects_directory:
            child = _read_directory(walk, level + 1)
        else:
            child = _read_data_entry(reader, walk.resource_table_rva)
        directory.entries.append(ResourceEntry(pointer, child))

    return directory


def _read_data_entry(reader: DataReader, resource_table_rva: int) -> ResourceDataEntry:
    entry = ResourceDataEntry.from_reader(reader)
    if entry.OffsetToData != 0 and entry.Size > 0:
        reader.seek(entry.OffsetToData - resource_table_rva)
        entry.data = reader.read_fixed_string(entry.Size)
    return entry
