"""
pecoff: decoding and reassembly of Windows PE/COFF images.

This package turns an .exe or .dll byte stream into a structured object
graph and writes an equivalent byte stream back out:
- io: little-endian DataReader / DataWriter cursors
- types: header and directory records
- sections: section table and RVA converter
- resources, resource_types: resource tree and resource payload records
- imports: import directory
- parser: decoding entry points
- assembler: encoders
- snapshot: compressed MessagePack snapshots of decoded images
- verify: round-trip verification

    from pecoff import parse_file, image_to_bytes

    image = parse_file(Path("foo.dll"))
    for entry in image.import_directory or []:
        print(entry.name, [imp.name or imp.ordinal for imp in entry.lookup_table])

    data = image_to_bytes(image)
"""

from .errors import (
    PEFormatError,
    TruncatedInput,
    OutOfBoundsOffset,
    MalformedStructure,
    MalformedResourceTree,
)
from .io import DataReader, DataWriter
from .types import (
    # Structs
    Structure,
    DosHeader,
    CoffHeader,
    OptionalHeader,
    DataDirectory,
    SectionHeader,
    LoadConfigDirectory,
    ExportDirectoryTable,
    DebugDirectory,
    # Constants
    DOS_MAGIC,
    PE_SIGNATURE,
    IMAGE_NT_OPTIONAL_HDR32_MAGIC,
    IMAGE_FILE_DLL,
    IMAGE_FILE_EXECUTABLE_IMAGE,
    IMAGE_NUMBEROF_DIRECTORY_ENTRIES,
)
from .sections import RVAConverter, SectionTable, read_sections
from .resources import (
    ResourceDirectory,
    ResourceDirectoryTable,
    ResourceEntry,
    ResourcePointer,
    ResourceDataEntry,
    read_resource_directory,
    RESOURCE_TREE_DEPTH,
)
from .resource_types import (
    FixedFileInfo,
    RGBQuad,
    IconDirectory,
    IconDirectoryEntry,
    read_fixed_file_info,
    read_rgb_quad,
    read_icon_directory,
    read_icon_directory_entry,
    find_fixed_file_info,
)
from .imports import (
    ImportDirectory,
    ImportDirectoryEntry,
    ImportEntry,
    read_import_directory,
)
from .image import FileGap, Image
from .parser import (
    read_dos_header,
    read_stub,
    read_signature,
    read_coff_header,
    read_optional_header,
    read_load_config_directory,
    read_image,
    parse_bytes,
    parse_file,
)
from .assembler import (
    write_fixed_file_info,
    write_rgb_quad,
    write_icon_directory_entry,
    write_icon_directory,
    write_image,
    image_to_bytes,
)
from .snapshot import image_to_dict, pack_snapshot, unpack_snapshot, diff_snapshots
from .format_detect import (
    UnsupportedBinaryFormat,
    check_pe_format,
    is_pe_data,
    is_pe_binary,
)
from .verify import VerificationResult, verify_roundtrip, verify_file

__all__ = [
    # Errors
    "PEFormatError",
    "TruncatedInput",
    "OutOfBoundsOffset",
    "MalformedStructure",
    "MalformedResourceTree",
    # Cursors
    "DataReader",
    "DataWriter",
    # Structs
    "Structure",
    "DosHeader",
    "CoffHeader",
    "OptionalHeader",
    "DataDirectory",
    "SectionHeader",
    "LoadConfigDirectory",
    "ExportDirectoryTable",
    "DebugDirectory",
    # Constants
    "DOS_MAGIC",
    "PE_SIGNATURE",
    "IMAGE_NT_OPTIONAL_HDR32_MAGIC",
    "IMAGE_FILE_DLL",
    "IMAGE_FILE_EXECUTABLE_IMAGE",
    "IMAGE_NUMBEROF_DIRECTORY_ENTRIES",
    # Sections
    "RVAConverter",
    "SectionTable",
    "read_sections",
    # Resources
    "ResourceDirectory",
    "ResourceDirectoryTable",
    "ResourceEntry",
    "ResourcePointer",
    "ResourceDataEntry",
    "read_resource_directory",
    "RESOURCE_TREE_DEPTH",
    "FixedFileInfo",
    "RGBQuad",
    "IconDirectory",
    "IconDirectoryEntry",
    "read_fixed_file_info",
    "read_rgb_quad",
    "read_icon_directory",
    "read_icon_directory_entry",
    "find_fixed_file_info",
    # Imports
    "ImportDirectory",
    "ImportDirectoryEntry",
    "ImportEntry",
    "read_import_directory",
    # Decoding
    "FileGap",
    "Image",
    "read_dos_header",
    "read_stub",
    "read_signature",
    "read_coff_header",
    "read_optional_header",
    "read_load_config_directory",
    "read_image",
    "parse_bytes",
    "parse_file",
    # Encoding
    "write_fixed_file_info",
    "write_rgb_quad",
    "write_icon_directory_entry",
    "write_icon_directory",
    "write_image",
    "image_to_bytes",
    # Snapshots
    "image_to_dict",
    "pack_snapshot",
    "unpack_snapshot",
    "diff_snapshots",
    # Format detection
    "UnsupportedBinaryFormat",
    "check_pe_format",
    "is_pe_data",
    "is_pe_binary",
    # Verification
    "VerificationResult",
    "verify_roundtrip",
    "verify_file",
]
