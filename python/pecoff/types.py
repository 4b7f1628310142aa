"""
PE/COFF type definitions.

This module holds the fixed-layout records of the PE/COFF format together
with the constants needed to interpret them.

Every record is a dataclass whose fields are declared in on-disk order and
whose little-endian layout is given by STRUCT_FMT, so decoding and encoding
walk exactly the same field sequence. Records are mutable: callers may edit
header fields before re-assembling an image.

References:
- Microsoft PE/COFF Specification
- https://learn.microsoft.com/en-us/windows/win32/debug/pe-format
"""

import struct
from dataclasses import dataclass, field, fields
from typing import ClassVar

from .io import DataReader, DataWriter

# =============================================================================
# Constants
# =============================================================================

# DOS Header
DOS_MAGIC = 0x5A4D  # "MZ" in little-endian
DOS_PAGE_SIZE = 512
DOS_PARAGRAPH_SIZE = 16

# PE Signature
PE_SIGNATURE = b"PE\x00\x00"
PE_SIGNATURE_OFFSET_LOCATION = 0x3C  # Offset in DOS header where e_lfanew lives

# Machine types
IMAGE_FILE_MACHINE_UNKNOWN = 0x0
IMAGE_FILE_MACHINE_I386 = 0x14C
IMAGE_FILE_MACHINE_AMD64 = 0x8664
IMAGE_FILE_MACHINE_ARM64 = 0xAA64

# Optional header magic
IMAGE_NT_OPTIONAL_HDR32_MAGIC = 0x10B
IMAGE_NT_OPTIONAL_HDR64_MAGIC = 0x20B  # PE32+

# Section characteristics
IMAGE_SCN_CNT_CODE = 0x00000020
IMAGE_SCN_CNT_INITIALIZED_DATA = 0x00000040
IMAGE_SCN_CNT_UNINITIALIZED_DATA = 0x00000080
IMAGE_SCN_MEM_DISCARDABLE = 0x02000000
IMAGE_SCN_MEM_SHARED = 0x10000000
IMAGE_SCN_MEM_EXECUTE = 0x20000000
IMAGE_SCN_MEM_READ = 0x40000000
IMAGE_SCN_MEM_WRITE = 0x80000000

# File characteristics
IMAGE_FILE_RELOCS_STRIPPED = 0x0001
IMAGE_FILE_EXECUTABLE_IMAGE = 0x0002
IMAGE_FILE_LARGE_ADDRESS_AWARE = 0x0020
IMAGE_FILE_32BIT_MACHINE = 0x0100
IMAGE_FILE_DEBUG_STRIPPED = 0x0200
IMAGE_FILE_SYSTEM = 0x1000
IMAGE_FILE_DLL = 0x2000

# Data directory indices
IMAGE_DIRECTORY_ENTRY_EXPORT = 0
IMAGE_DIRECTORY_ENTRY_IMPORT = 1
IMAGE_DIRECTORY_ENTRY_RESOURCE = 2
IMAGE_DIRECTORY_ENTRY_EXCEPTION = 3
IMAGE_DIRECTORY_ENTRY_SECURITY = 4
IMAGE_DIRECTORY_ENTRY_BASERELOC = 5
IMAGE_DIRECTORY_ENTRY_DEBUG = 6
IMAGE_DIRECTORY_ENTRY_ARCHITECTURE = 7
IMAGE_DIRECTORY_ENTRY_GLOBALPTR = 8
IMAGE_DIRECTORY_ENTRY_TLS = 9
IMAGE_DIRECTORY_ENTRY_LOAD_CONFIG = 10
IMAGE_DIRECTORY_ENTRY_BOUND_IMPORT = 11
IMAGE_DIRECTORY_ENTRY_IAT = 12
IMAGE_DIRECTORY_ENTRY_DELAY_IMPORT = 13
IMAGE_DIRECTORY_ENTRY_COM_DESCRIPTOR = 14
IMAGE_DIRECTORY_ENTRY_RESERVED = 15
IMAGE_NUMBEROF_DIRECTORY_ENTRIES = 16

# Debug directory types
IMAGE_DEBUG_TYPE_UNKNOWN = 0
IMAGE_DEBUG_TYPE_COFF = 1
IMAGE_DEBUG_TYPE_CODEVIEW = 2
IMAGE_DEBUG_TYPE_MISC = 4

# Structure sizes
DOS_HEADER_SIZE = 64
COFF_HEADER_SIZE = 20
OPTIONAL_HEADER_FIXED_SIZE = 96  # PE32 layout, before data directories
DATA_DIRECTORY_SIZE = 8
OPTIONAL_HEADER_SIZE = (
    OPTIONAL_HEADER_FIXED_SIZE
    + IMAGE_NUMBEROF_DIRECTORY_ENTRIES * DATA_DIRECTORY_SIZE
)
SECTION_HEADER_SIZE = 40
LOAD_CONFIG_DIRECTORY_SIZE = 100
EXPORT_DIRECTORY_SIZE = 40
DEBUG_DIRECTORY_SIZE = 28


# =============================================================================
# Base record
# =============================================================================


def derived(default=None, **kwargs):
    """Declare a dataclass field that is derived on decode, not stored on disk."""
    metadata = {"derived": True}
    if "default_factory" in kwargs:
        return field(metadata=metadata, **kwargs)
    return field(default=default, metadata=metadata, **kwargs)


class Structure:
    """Base for fixed-layout little-endian records.

    Subclasses are dataclasses declaring their on-disk fields in order,
    followed by any derived fields declared with ``derived()``.
    """

    STRUCT_FMT: ClassVar[str]
    SIZE: ClassVar[int]

    @classmethod
    def from_reader(cls, reader: DataReader):
        """Decode the record at the reader's cursor and advance past it."""
        return cls(*reader.unpack(cls.STRUCT_FMT))

    @classmethod
    def from_bytes(cls, data: bytes | bytearray, offset: int = 0):
        """Decode the record from a buffer at offset."""
        return cls.from_reader(DataReader(data, offset))

    def values(self) -> tuple:
        """On-disk field values in declaration order."""
        return tuple(
            getattr(self, f.name)
            for f in fields(self)
            if not f.metadata.get("derived")
        )

    def write(self, writer: DataWriter) -> None:
        """Encode the record at the writer's cursor."""
        writer.pack(self.STRUCT_FMT, *self.values())

    def to_bytes(self) -> bytes:
        """Serialize the record to binary data."""
        return struct.pack(self.STRUCT_FMT, *self.values())


# =============================================================================
# PE/COFF Headers
# =============================================================================


@dataclass
class DosHeader(Structure):
    """DOS MZ header (IMAGE_DOS_HEADER).

    The DOS header is 64 bytes and exists for backwards compatibility.
    e_lfanew points to the PE signature; the bytes between the header and
    e_lfanew are the DOS stub program.
    """

    e_magic: int  # "MZ" = 0x5A4D
    e_cblp: int  # Bytes used in last page
    e_cp: int  # File size in 512-byte pages
    e_crlc: int  # Relocation items
    e_cparhdr: int  # Header size in 16-byte paragraphs
    e_minalloc: int
    e_maxalloc: int
    e_ss: int
    e_sp: int
    e_csum: int
    e_ip: int
    e_cs: int
    e_lfarlc: int  # Address of relocation table
    e_ovno: int  # Overlay number
    e_res: bytes  # 4 reserved words
    e_oemid: int
    e_oeminfo: int
    e_res2: bytes  # 10 reserved words
    e_lfanew: int  # Offset to PE signature

    STRUCT_FMT: ClassVar[str] = "<HHHHHHHHHHHHHH8sHH20sI"
    SIZE: ClassVar[int] = 64

    @property
    def stub_size(self) -> int:
        """Size of the DOS program image as declared by the MZ header.

        The DOS file size (pages and last-page byte count) is clamped to
        e_lfanew, then the header paragraphs are subtracted.
        """
        size = self.e_cp * DOS_PAGE_SIZE - (DOS_PAGE_SIZE - self.e_cblp)
        if size > self.e_lfanew:
            size = self.e_lfanew
        return size - self.e_cparhdr * DOS_PARAGRAPH_SIZE

    @property
    def has_valid_magic(self) -> bool:
        return self.e_magic == DOS_MAGIC


@dataclass
class CoffHeader(Structure):
    """COFF file header (IMAGE_FILE_HEADER).

    This 20-byte header comes right after the PE signature.
    """

    Machine: int  # Target machine type (e.g., I386)
    NumberOfSections: int
    TimeDateStamp: int
    PointerToSymbolTable: int  # Usually 0 for executables
    NumberOfSymbols: int  # Usually 0 for executables
    SizeOfOptionalHeader: int
    Characteristics: int  # File characteristics flags

    STRUCT_FMT: ClassVar[str] = "<HHIIIHH"
    SIZE: ClassVar[int] = 20

    @property
    def is_dll(self) -> bool:
        """Check if this is a DLL."""
        return bool(self.Characteristics & IMAGE_FILE_DLL)

    @property
    def is_executable(self) -> bool:
        """Check if this is an executable image."""
        return bool(self.Characteristics & IMAGE_FILE_EXECUTABLE_IMAGE)


@dataclass
class DataDirectory(Structure):
    """Data directory entry (IMAGE_DATA_DIRECTORY)."""

    VirtualAddress: int  # RVA of the data
    Size: int  # Size of the data

    STRUCT_FMT: ClassVar[str] = "<II"
    SIZE: ClassVar[int] = 8

    @property
    def is_present(self) -> bool:
        """Check if this data directory is present."""
        return self.VirtualAddress != 0 or self.Size != 0


def _empty_directories() -> list[DataDirectory]:
    return [DataDirectory(0, 0) for _ in range(IMAGE_NUMBEROF_DIRECTORY_ENTRIES)]


def _directory(index: int) -> property:
    def getter(self) -> DataDirectory:
        return self.DataDirectories[index]

    def setter(self, value: DataDirectory) -> None:
        self.DataDirectories[index] = value

    return property(getter, setter)


@dataclass
class OptionalHeader(Structure):
    """Optional header (IMAGE_OPTIONAL_HEADER32) and its data directories.

    The PE32 layout is used for every image: BaseOfData is present and
    ImageBase and the stack/heap sizes are 32-bit. Exactly 16 data
    directories follow, independent of NumberOfRvaAndSizes.
    """

    Magic: int  # 0x10B for PE32
    MajorLinkerVersion: int
    MinorLinkerVersion: int
    SizeOfCode: int
    SizeOfInitializedData: int
    SizeOfUninitializedData: int
    AddressOfEntryPoint: int
    BaseOfCode: int
    BaseOfData: int
    ImageBase: int
    SectionAlignment: int
    FileAlignment: int
    MajorOperatingSystemVersion: int
    MinorOperatingSystemVersion: int
    MajorImageVersion: int
    MinorImageVersion: int
    MajorSubsystemVersion: int
    MinorSubsystemVersion: int
    Win32VersionValue: int
    SizeOfImage: int
    SizeOfHeaders: int
    CheckSum: int
    Subsystem: int
    DllCharacteristics: int
    SizeOfStackReserve: int
    SizeOfStackCommit: int
    SizeOfHeapReserve: int
    SizeOfHeapCommit: int
    LoaderFlags: int
    NumberOfRvaAndSizes: int
    DataDirectories: list[DataDirectory] = derived(default_factory=_empty_directories)

    # 2 + 1 + 1 + 4*9 + 2*6 + 4*4 + 2*2 + 4*6 = 96 bytes
    STRUCT_FMT: ClassVar[str] = "<HBB" "IIIIIIIII" "HHHHHH" "IIII" "HH" "IIIIII"
    SIZE: ClassVar[int] = OPTIONAL_HEADER_SIZE

    @classmethod
    def from_reader(cls, reader: DataReader) -> "OptionalHeader":
        header = cls(*reader.unpack(cls.STRUCT_FMT))
        header.DataDirectories = [
            DataDirectory.from_reader(reader)
            for _ in range(IMAGE_NUMBEROF_DIRECTORY_ENTRIES)
        ]
        return header

    def write(self, writer: DataWriter) -> None:
        writer.pack(self.STRUCT_FMT, *self.values())
        for directory in self.DataDirectories:
            directory.write(writer)

    def to_bytes(self) -> bytes:
        writer = DataWriter()
        self.write(writer)
        return writer.getvalue()

    export_table = _directory(IMAGE_DIRECTORY_ENTRY_EXPORT)
    import_table = _directory(IMAGE_DIRECTORY_ENTRY_IMPORT)
    resource_table = _directory(IMAGE_DIRECTORY_ENTRY_RESOURCE)
    exception_table = _directory(IMAGE_DIRECTORY_ENTRY_EXCEPTION)
    certificate_table = _directory(IMAGE_DIRECTORY_ENTRY_SECURITY)
    base_relocation_table = _directory(IMAGE_DIRECTORY_ENTRY_BASERELOC)
    debug = _directory(IMAGE_DIRECTORY_ENTRY_DEBUG)
    architecture = _directory(IMAGE_DIRECTORY_ENTRY_ARCHITECTURE)
    global_ptr = _directory(IMAGE_DIRECTORY_ENTRY_GLOBALPTR)
    tls_table = _directory(IMAGE_DIRECTORY_ENTRY_TLS)
    load_config_table = _directory(IMAGE_DIRECTORY_ENTRY_LOAD_CONFIG)
    bound_import = _directory(IMAGE_DIRECTORY_ENTRY_BOUND_IMPORT)
    iat = _directory(IMAGE_DIRECTORY_ENTRY_IAT)
    delay_import_descriptor = _directory(IMAGE_DIRECTORY_ENTRY_DELAY_IMPORT)
    clr_runtime_header = _directory(IMAGE_DIRECTORY_ENTRY_COM_DESCRIPTOR)
    reserved = _directory(IMAGE_DIRECTORY_ENTRY_RESERVED)


@dataclass
class SectionHeader(Structure):
    """PE/COFF section header (IMAGE_SECTION_HEADER).

    Each section header is 40 bytes.
    """

    Name: bytes  # 8 bytes, null-padded (NOT null-terminated if 8 chars)
    VirtualSize: int  # Size in memory (can be > SizeOfRawData)
    VirtualAddress: int  # RVA of section
    SizeOfRawData: int  # Size in file (rounded to FileAlignment)
    PointerToRawData: int  # File offset, 0 for uninitialized data
    PointerToRelocations: int  # Usually 0 for executables
    PointerToLinenumbers: int  # Deprecated, usually 0
    NumberOfRelocations: int
    NumberOfLinenumbers: int
    Characteristics: int  # Section flags

    STRUCT_FMT: ClassVar[str] = "<8sIIIIIIHHI"
    SIZE: ClassVar[int] = 40

    @property
    def name_str(self) -> str:
        """Get section name as string (strips null padding)."""
        null_pos = self.Name.find(b"\x00")
        if null_pos >= 0:
            return self.Name[:null_pos].decode("ascii", errors="replace")
        return self.Name.decode("ascii", errors="replace")

    @property
    def has_raw_data(self) -> bool:
        """Sections such as .bss have no bytes in the file."""
        return self.PointerToRawData != 0

    @property
    def end_rva(self) -> int:
        """RVA of end of section in memory."""
        return self.VirtualAddress + self.VirtualSize

    @property
    def end_file_offset(self) -> int:
        """File offset of end of section data."""
        return self.PointerToRawData + self.SizeOfRawData

    @property
    def is_code(self) -> bool:
        return bool(self.Characteristics & IMAGE_SCN_CNT_CODE)

    @property
    def is_uninitialized_data(self) -> bool:
        return bool(self.Characteristics & IMAGE_SCN_CNT_UNINITIALIZED_DATA)

    def contains_rva(self, rva: int) -> bool:
        """Check if an RVA falls within this section."""
        return self.VirtualAddress <= rva < self.end_rva


# =============================================================================
# Data directory records
# =============================================================================


@dataclass
class LoadConfigDirectory(Structure):
    """Load configuration directory (IMAGE_LOAD_CONFIG_DIRECTORY).

    Pointer-width fields are always decoded as 64-bit values, whatever the
    image bitness. For PE32 images those fields therefore straddle their
    32-bit neighbours.
    """

    Characteristics: int
    TimeDateStamp: int
    MajorVersion: int
    MinorVersion: int
    GlobalFlagsClear: int
    GlobalFlagsSet: int
    CriticalSectionDefaultTimeout: int
    DeCommitFreeBlockThreshold: int  # 64-bit
    DeCommitTotalFreeThreshold: int  # 64-bit
    LockPrefixTable: int  # 64-bit
    MaximumAllocationSize: int  # 64-bit
    VirtualMemoryThreshold: int  # 64-bit
    ProcessAffinityMask: int  # 64-bit
    ProcessHeapFlags: int
    CSDVersion: int
    Reserved: int
    EditList: int  # 64-bit
    SecurityCookie: int
    SEHandlerTable: int
    SEHandlerCount: int

    STRUCT_FMT: ClassVar[str] = "<IIHHIII" "QQQQQQ" "IHH" "Q" "III"
    SIZE: ClassVar[int] = LOAD_CONFIG_DIRECTORY_SIZE


@dataclass
class ExportDirectoryTable(Structure):
    """Export directory table (IMAGE_EXPORT_DIRECTORY)."""

    ExportFlags: int
    TimeDateStamp: int
    MajorVersion: int
    MinorVersion: int
    NameRVA: int
    OrdinalBase: int
    AddressTableEntries: int
    NumberOfNamePointers: int
    ExportAddressTableRVA: int
    NamePointerRVA: int
    OrdinalTableRVA: int
    name: str | None = derived()  # Resolved DLL name

    STRUCT_FMT: ClassVar[str] = "<IIHHIIIIIII"
    SIZE: ClassVar[int] = EXPORT_DIRECTORY_SIZE


@dataclass
class DebugDirectory(Structure):
    """Debug directory entry (IMAGE_DEBUG_DIRECTORY).

    Only the directory bookkeeping is decoded; the debug data it points to
    is left untouched.
    """

    Characteristics: int
    TimeDateStamp: int
    MajorVersion: int
    MinorVersion: int
    Type: int
    SizeOfData: int
    AddressOfRawData: int
    PointerToRawData: int

    STRUCT_FMT: ClassVar[str] = "<IIHHIIII"
    SIZE: ClassVar[int] = DEBUG_DIRECTORY_SIZE

