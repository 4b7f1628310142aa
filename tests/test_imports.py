"""Tests for import directory decoding."""

import pytest

from pecoff.errors import OutOfBoundsOffset, TruncatedInput
from pecoff.imports import ImportDirectory, read_import_directory
from pe_test_utils import RDATA_RVA, build_rdata


class TestReadImportDirectory:
    """Tests for read_import_directory."""

    def test_two_entries_and_terminator(self):
        """Test that the zero descriptor ends the directory."""
        rdata = build_rdata(
            RDATA_RVA,
            modules=[
                ("KERNEL32.dll", ["ExitProcess"]),
                ("USER32.dll", ["MessageBoxA"]),
            ],
        )
        directory = read_import_directory(rdata.data, RDATA_RVA, rdata.import_rva)

        assert isinstance(directory, ImportDirectory)
        assert len(directory) == 2
        assert directory.module_names == ["KERNEL32.dll", "USER32.dll"]

    def test_ordinal_import(self):
        """Test that a lookup value with bit 31 set resolves to its ordinal."""
        rdata = build_rdata(RDATA_RVA, modules=[("WS2_32.dll", [7])])
        directory = read_import_directory(rdata.data, RDATA_RVA, rdata.import_rva)

        (entry,) = directory.entries[0].lookup_table
        assert entry.value == 0x80000007
        assert entry.is_ordinal
        assert entry.ordinal == 7
        assert entry.name is None
        assert entry.hint is None

    def test_name_import(self):
        """Test that a lookup value without bit 31 resolves to a hint and name."""
        rdata = build_rdata(
            RDATA_RVA, modules=[("KERNEL32.dll", ["ExitProcess", "GetModuleHandleA"])]
        )
        directory = read_import_directory(rdata.data, RDATA_RVA, rdata.import_rva)

        first, second = directory.entries[0].lookup_table
        assert not first.is_ordinal
        assert first.name == "ExitProcess"
        assert first.hint == 0
        assert first.ordinal is None
        assert second.name == "GetModuleHandleA"
        assert second.hint == 1

    def test_mixed_lookup_table(self):
        """Test a table mixing ordinal and name imports keeps its order."""
        rdata = build_rdata(RDATA_RVA, modules=[("WS2_32.dll", [23, "WSAStartup", 116])])
        directory = read_import_directory(rdata.data, RDATA_RVA, rdata.import_rva)

        table = directory.entries[0].lookup_table
        assert [e.ordinal for e in table] == [23, None, 116]
        assert [e.name for e in table] == [None, "WSAStartup", None]

    def test_import_address_table_recorded_not_resolved(self):
        """Test that the IAT RVA is kept as metadata only."""
        rdata = build_rdata(RDATA_RVA, modules=[("KERNEL32.dll", ["ExitProcess"])])
        directory = read_import_directory(rdata.data, RDATA_RVA, rdata.import_rva)

        entry = directory.entries[0]
        assert entry.ImportAddressTableRVA != 0
        assert entry.ImportAddressTableRVA != entry.ImportLookupTableRVA
        assert entry.ImportAddressTableRVA > RDATA_RVA

    def test_get_entry_is_case_insensitive(self):
        """Test looking up a module by name."""
        rdata = build_rdata(RDATA_RVA, modules=[("KERNEL32.dll", ["ExitProcess"])])
        directory = read_import_directory(rdata.data, RDATA_RVA, rdata.import_rva)

        assert directory.get_entry("kernel32.DLL") is directory.entries[0]
        assert directory.get_entry("user32.dll") is None

    def test_empty_directory(self):
        """Test a directory consisting only of the terminator."""
        directory = read_import_directory(bytes(20), RDATA_RVA, RDATA_RVA)

        assert len(directory) == 0
        assert list(directory) == []

    def test_name_rva_outside_section_raises(self):
        """Test that a descriptor pointing past the section propagates."""
        rdata = build_rdata(RDATA_RVA, modules=[("KERNEL32.dll", ["ExitProcess"])])
        data = bytearray(rdata.data)
        data[12:16] = (RDATA_RVA + 0x10000).to_bytes(4, "little")  # NameRVA

        with pytest.raises(OutOfBoundsOffset):
            read_import_directory(bytes(data), RDATA_RVA, rdata.import_rva)

    def test_missing_terminator_raises(self):
        """Test that a directory without a terminator runs off the end."""
        rdata = build_rdata(RDATA_RVA, modules=[("KERNEL32.dll", ["ExitProcess"])])

        with pytest.raises(TruncatedInput):
            read_import_directory(rdata.data[:30], RDATA_RVA, rdata.import_rva)
