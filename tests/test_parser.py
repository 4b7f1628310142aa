"""Tests for whole-image decoding."""

import struct

import pytest

from pecoff import (
    FileGap,
    Image,
    MalformedStructure,
    TruncatedInput,
    find_fixed_file_info,
    parse_bytes,
    parse_file,
)
from pecoff.io import DataReader
from pecoff.parser import read_dos_header, read_stub
from pecoff.types import (
    IMAGE_DIRECTORY_ENTRY_DEBUG,
    IMAGE_DIRECTORY_ENTRY_EXPORT,
    IMAGE_DIRECTORY_ENTRY_IMPORT,
    IMAGE_DIRECTORY_ENTRY_LOAD_CONFIG,
    IMAGE_DIRECTORY_ENTRY_RESOURCE,
    IMAGE_DEBUG_TYPE_CODEVIEW,
    IMAGE_NT_OPTIONAL_HDR32_MAGIC,
    PE_SIGNATURE,
)
from pe_test_utils import (
    BSS_RVA,
    COFF_HEADER_OFFSET,
    DEFAULT_TIMESTAMP,
    DOS_STUB,
    RDATA_RVA,
    RSRC_RVA,
    RT_RCDATA,
    RT_VERSION,
    SAMPLE_EXPORT_NAME,
    SAMPLE_FILE_VERSION,
    SAMPLE_SECURITY_COOKIE,
    TEXT_CODE,
    TEXT_RVA,
    SectionSpec,
    build_pe,
    build_rdata,
    build_sample_image,
    patch_data_directory,
)


class TestHeaders:
    """Tests for the mandatory headers."""

    def test_sample_headers(self, sample_image: Image):
        """Test decoding the DOS, COFF and optional headers."""
        assert isinstance(sample_image, Image)
        assert sample_image.dos_header.has_valid_magic
        assert sample_image.dos_header.e_lfanew == 0x80
        assert sample_image.stub == DOS_STUB
        assert sample_image.signature == PE_SIGNATURE
        assert sample_image.coff_header.NumberOfSections == 4
        assert sample_image.coff_header.TimeDateStamp == DEFAULT_TIMESTAMP
        assert sample_image.optional_header.Magic == IMAGE_NT_OPTIONAL_HDR32_MAGIC
        assert sample_image.entry_point == TEXT_RVA
        assert not sample_image.is_dll

    def test_stub_ends_at_pe_offset(self):
        """Test that the stub covers the bytes from the DOS header to e_lfanew."""
        data = build_sample_image()
        reader = DataReader(data)
        header = read_dos_header(reader)
        stub = read_stub(header, reader)

        assert len(stub) == header.stub_size == 64
        assert reader.position == header.e_lfanew

    def test_pe_offset_inside_dos_header_raises(self):
        """Test that e_lfanew pointing into the DOS header is rejected."""
        data = bytearray(build_sample_image())
        struct.pack_into("<I", data, 60, 0x20)

        with pytest.raises(MalformedStructure):
            parse_bytes(bytes(data))

    def test_dll_flag(self):
        """Test that the DLL characteristic is surfaced."""
        assert parse_bytes(build_sample_image(dll=True)).is_dll

    def test_truncated_dos_header_raises(self):
        """Test that input shorter than the DOS header fails to decode."""
        with pytest.raises(TruncatedInput):
            parse_bytes(b"MZ" + b"\x00" * 30)

    def test_truncated_optional_header_raises(self):
        """Test that input ending inside the optional header fails to decode."""
        with pytest.raises(TruncatedInput):
            parse_bytes(build_sample_image()[:0x100])

    def test_truncated_section_data_raises(self):
        """Test that input ending inside section raw data fails to decode."""
        with pytest.raises(TruncatedInput):
            parse_bytes(build_sample_image()[:0x500])

    def test_larger_optional_header_size(self):
        """Test that the section table is found through SizeOfOptionalHeader."""
        sections = [SectionSpec(".text", TEXT_RVA, TEXT_CODE)]
        data = bytearray(build_pe(sections))
        # Grow SizeOfOptionalHeader by 16 and shift the section table
        table = 0x178
        header = bytes(data[table : table + 40])
        data[table : table + 56] = bytes(16) + header
        struct.pack_into("<H", data, COFF_HEADER_OFFSET + 16, 224 + 16)

        image = parse_bytes(bytes(data))
        assert image.sections[0].name_str == ".text"
        assert image.section_bytes(".text").startswith(TEXT_CODE)


class TestSections:
    """Tests for the decoded section table."""

    def test_sample_sections(self, sample_image: Image):
        """Test the section table order and loaded bytes."""
        assert [s.name_str for s in sample_image.sections] == [
            ".text",
            ".rdata",
            ".rsrc",
            ".bss",
        ]
        assert sample_image.section_bytes(".text").startswith(TEXT_CODE)
        assert sample_image.section_bytes(".bss") is None
        assert sample_image.get_section(".bss").VirtualAddress == BSS_RVA

    def test_rva_to_offset(self, sample_image: Image):
        """Test translating RVAs through the decoded image."""
        rdata = sample_image.get_section(".rdata")
        assert sample_image.rva_to_offset(RDATA_RVA + 0x10) == rdata.PointerToRawData + 0x10


class TestResources:
    """Tests for resource decoding within an image."""

    def test_sample_resources(self, sample_image: Image):
        """Test the resource tree of the sample image."""
        root = sample_image.resource_directory
        assert root is not None
        assert root.depth() == 4
        assert len(root.find(RT_RCDATA)) == 2

        (version,) = root.find(RT_VERSION)
        assert find_fixed_file_info(version.data).file_version == SAMPLE_FILE_VERSION

    def test_absent_rsrc_section(self):
        """Test that an image without .rsrc has no resource tree."""
        sections = [SectionSpec(".text", TEXT_RVA, TEXT_CODE)]
        data = build_pe(sections, {IMAGE_DIRECTORY_ENTRY_RESOURCE: (RSRC_RVA, 0x100)})

        assert parse_bytes(data).resource_directory is None

    def test_zero_size_resource_directory(self):
        """Test that a resource directory of size 0 is not decoded."""
        data = patch_data_directory(
            build_sample_image(), IMAGE_DIRECTORY_ENTRY_RESOURCE, RSRC_RVA, 0
        )
        image = parse_bytes(data)

        assert image.resource_directory is None
        assert image.section_bytes(".rsrc") is not None


class TestImports:
    """Tests for import decoding within an image."""

    def test_sample_imports(self, sample_image: Image):
        """Test the import directory of the sample image."""
        imports = sample_image.import_directory
        assert imports is not None
        assert imports.module_names == ["KERNEL32.dll", "WS2_32.dll"]

        kernel32 = imports.get_entry("KERNEL32.dll")
        assert [e.name for e in kernel32.lookup_table] == [
            "ExitProcess",
            "GetModuleHandleA",
        ]
        ws2_32 = imports.get_entry("WS2_32.dll")
        assert ws2_32.lookup_table[0].ordinal == 7
        assert ws2_32.lookup_table[1].name == "WSAStartup"

    def test_no_import_directory(self):
        """Test that a zero import directory yields no imports."""
        data = patch_data_directory(
            build_sample_image(), IMAGE_DIRECTORY_ENTRY_IMPORT, 0, 0
        )
        assert parse_bytes(data).import_directory is None

    def test_import_rva_before_rdata(self):
        """Test that a negative .rdata offset yields no imports."""
        data = patch_data_directory(
            build_sample_image(), IMAGE_DIRECTORY_ENTRY_IMPORT, TEXT_RVA, 40
        )
        assert parse_bytes(data).import_directory is None

    def test_import_rva_past_rdata(self):
        """Test that an offset beyond the .rdata bytes yields no imports."""
        image = parse_bytes(build_sample_image())
        past_end = RDATA_RVA + len(image.section_bytes(".rdata"))
        data = patch_data_directory(
            build_sample_image(), IMAGE_DIRECTORY_ENTRY_IMPORT, past_end, 40
        )
        assert parse_bytes(data).import_directory is None

    def test_no_rdata_section(self):
        """Test that imports are only looked for in .rdata."""
        rdata = build_rdata(RDATA_RVA, modules=[("KERNEL32.dll", ["ExitProcess"])])
        sections = [SectionSpec(".idata", RDATA_RVA, rdata.data)]
        data = build_pe(
            sections,
            {IMAGE_DIRECTORY_ENTRY_IMPORT: (rdata.import_rva, rdata.import_size)},
        )
        assert parse_bytes(data).import_directory is None


class TestLoadConfig:
    """Tests for load config decoding within an image."""

    def test_sample_load_config(self, sample_image: Image):
        """Test the load config record of the sample image."""
        config = sample_image.load_config_directory
        assert config is not None
        assert config.Characteristics == 100
        assert config.TimeDateStamp == DEFAULT_TIMESTAMP
        assert config.SecurityCookie == SAMPLE_SECURITY_COOKIE

    def test_zero_size(self):
        """Test that a load config directory of size 0 is not decoded."""
        data = patch_data_directory(
            build_sample_image(), IMAGE_DIRECTORY_ENTRY_LOAD_CONFIG, RDATA_RVA, 0
        )
        assert parse_bytes(data).load_config_directory is None

    def test_outside_rdata(self):
        """Test that a load config outside .rdata is not decoded."""
        data = patch_data_directory(
            build_sample_image(), IMAGE_DIRECTORY_ENTRY_LOAD_CONFIG, BSS_RVA, 100
        )
        assert parse_bytes(data).load_config_directory is None


class TestExportsAndDebug:
    """Tests for the export and debug directories."""

    def test_sample_exports(self, sample_image: Image):
        """Test the export directory table and its resolved name."""
        exports = sample_image.export_directory
        assert exports is not None
        assert exports.name == SAMPLE_EXPORT_NAME
        assert exports.OrdinalBase == 1

    def test_sample_debug(self, sample_image: Image):
        """Test the debug directory entries."""
        (entry,) = sample_image.debug_directories
        assert entry.Type == IMAGE_DEBUG_TYPE_CODEVIEW
        assert entry.TimeDateStamp == DEFAULT_TIMESTAMP

    def test_absent_directories(self):
        """Test that images without exports or debug info leave them unset."""
        data = patch_data_directory(
            build_sample_image(), IMAGE_DIRECTORY_ENTRY_EXPORT, 0, 0
        )
        data = patch_data_directory(data, IMAGE_DIRECTORY_ENTRY_DEBUG, 0, 0)
        image = parse_bytes(data)

        assert image.export_directory is None
        assert image.debug_directories is None

    def test_export_rva_in_headers(self):
        """Test that an export RVA before the first section is not followed."""
        data = patch_data_directory(
            build_sample_image(), IMAGE_DIRECTORY_ENTRY_EXPORT, 0x200, 40
        )
        assert parse_bytes(data).export_directory is None


class TestOverlay:
    """Tests for trailing data after the last section."""

    def test_no_overlay(self, sample_image: Image):
        """Test that an image ending at its last section has no overlay."""
        assert sample_image.overlay == b""

    def test_overlay(self, overlay_image_bytes: bytes):
        """Test that trailing bytes are kept."""
        image = parse_bytes(overlay_image_bytes)
        assert image.overlay == b"OVERLAY-SIGNATURE-BLOB" * 4


class TestGaps:
    """Tests for bytes outside the headers and section data."""

    def test_no_gaps(self, sample_image: Image):
        """Test that all-zero padding is not kept."""
        assert sample_image.gaps == []

    def test_header_slack(self):
        """Test that non-zero header slack is kept as one range."""
        data = bytearray(build_sample_image())
        data[0x3F0:0x3F8] = b"BOUNDIMP"

        image = parse_bytes(bytes(data))
        headers_end = 0x178 + 4 * 40
        assert image.gaps == [
            FileGap(offset=headers_end, data=bytes(data[headers_end:0x400]))
        ]
        assert image.gaps[0].data.endswith(b"BOUNDIMP" + bytes(8))

    def test_extra_optional_header_bytes(self):
        """Test that bytes past the 224-byte optional header are kept."""
        sections = [SectionSpec(".text", TEXT_RVA, TEXT_CODE)]
        data = bytearray(build_pe(sections))
        table = 0x178
        header = bytes(data[table : table + 40])
        data[table : table + 56] = b"EXTRAHDR" + bytes(8) + header
        struct.pack_into("<H", data, COFF_HEADER_OFFSET + 16, 224 + 16)

        image = parse_bytes(bytes(data))
        assert image.gaps == [FileGap(offset=table, data=b"EXTRAHDR" + bytes(8))]
        assert image.sections[0].name_str == ".text"


class TestParseFile:
    """Tests for parse_file."""

    def test_parse_file(self, sample_image_path):
        """Test decoding from disk."""
        image = parse_file(sample_image_path)
        assert image.coff_header.NumberOfSections == 4
        assert image.import_directory is not None
