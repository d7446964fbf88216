import uuid

import pefile
import pytest

from symlocator.constants import DEBUG_TYPE_CODEVIEW, DEBUG_TYPE_PDB_CHECKSUM
from symlocator.exceptions import PEParseError
from symlocator.models import ChecksumEntry, DebugDirectoryEntry
from symlocator.pe_parsing import (
    parse_codeview_data,
    parse_pdb_checksum_data,
    read_debug_directory,
    read_debug_entries,
)
from symlocator.symbol_server import compute_symbol_index
from tests.builders import (
    build_pe,
    checksum_entry,
    checksum_payload,
    codeview_payload,
    portable_codeview_entry,
)

IDENTIFIER = uuid.UUID("12345678-1234-1234-1234-123456789ABC")
SHA256 = ChecksumEntry("SHA256", bytes(range(32)))
SHA384 = ChecksumEntry("SHA384", bytes(range(48)))


def _entry(entry_tuple):
    return DebugDirectoryEntry(*entry_tuple)


def test_parse_codeview_payload():
    info = parse_codeview_data(codeview_payload(IDENTIFIER, "C:\\obj\\Foo.pdb", age=7))
    assert info.identifier == IDENTIFIER
    assert info.original_path == "C:\\obj\\Foo.pdb"


def test_parse_codeview_rejects_other_signatures():
    assert parse_codeview_data(b"NB10" + b"\x00" * 30) is None
    assert parse_codeview_data(b"RSDS" + b"\x00" * 10) is None


def test_parse_checksum_payload():
    assert parse_pdb_checksum_data(checksum_payload(SHA256)) == SHA256
    assert parse_pdb_checksum_data(b"SHA256") is None
    assert parse_pdb_checksum_data(b"SHA256\x00") is None


def test_collects_codeview_and_checksums_in_order():
    directory = read_debug_entries([
        _entry(checksum_entry(SHA384)),
        _entry(portable_codeview_entry(IDENTIFIER, "Foo.pdb")),
        _entry(checksum_entry(SHA256)),
    ])
    assert directory.codeview.identifier == IDENTIFIER
    assert directory.codeview.original_path == "Foo.pdb"
    assert directory.checksums == (SHA384, SHA256)


def test_last_portable_codeview_wins():
    other = uuid.UUID("00000000-0000-0000-0000-000000000001")
    directory = read_debug_entries([
        _entry(portable_codeview_entry(IDENTIFIER, "First.pdb")),
        _entry(portable_codeview_entry(other, "Second.pdb")),
    ])
    assert directory.codeview.identifier == other
    assert directory.codeview.original_path == "Second.pdb"


def test_windows_pdb_codeview_is_ignored():
    directory = read_debug_entries([
        DebugDirectoryEntry(DEBUG_TYPE_CODEVIEW, 0, 0, codeview_payload(IDENTIFIER, "Native.pdb")),
    ])
    assert directory.codeview is None
    assert directory.checksums == ()


def test_malformed_entries_are_skipped():
    directory = read_debug_entries([
        DebugDirectoryEntry(DEBUG_TYPE_PDB_CHECKSUM, 1, 0, b"garbage"),
        _entry(portable_codeview_entry(IDENTIFIER, "Foo.pdb")),
        DebugDirectoryEntry(DEBUG_TYPE_CODEVIEW, 0x100, 0x504D, b"RSDS"),
    ])
    assert directory.codeview.original_path == "Foo.pdb"
    assert directory.checksums == ()


def test_reads_pe_image():
    image = build_pe([
        portable_codeview_entry(IDENTIFIER, "/_/src/obj/Release/Foo.pdb"),
        checksum_entry(SHA256),
    ])
    directory = read_debug_directory(image)
    assert directory.codeview.identifier == IDENTIFIER
    assert directory.checksums == (SHA256,)
    assert compute_symbol_index(directory.codeview) == (
        "foo.pdb/12345678123412341234123456789ABCFFFFFFFF/foo.pdb"
    )


def test_reads_pe_file(tmp_path):
    path = tmp_path / "Foo.dll"
    path.write_bytes(build_pe([portable_codeview_entry(IDENTIFIER, "Foo.pdb")]))
    directory = read_debug_directory(path)
    assert directory.codeview.original_path == "Foo.pdb"


def test_pe_without_debug_directory():
    directory = read_debug_directory(build_pe([]))
    assert directory.codeview is None
    assert directory.checksums == ()


def test_not_a_pe_image():
    with pytest.raises(PEParseError):
        read_debug_directory(b"definitely not a portable executable" * 4)


def _raise_format_error(*args, **kwargs):
    raise pefile.PEFormatError("corrupt debug directory")


def test_parsed_image_is_accepted():
    pe = pefile.PE(data=build_pe([portable_codeview_entry(IDENTIFIER, "Foo.pdb")]), fast_load=True)
    directory = read_debug_directory(pe)
    assert directory.codeview.identifier == IDENTIFIER


def test_parsed_image_format_error_is_wrapped(monkeypatch):
    pe = pefile.PE(data=build_pe([portable_codeview_entry(IDENTIFIER, "Foo.pdb")]), fast_load=True)
    monkeypatch.setattr(pe, "parse_data_directories", _raise_format_error)
    with pytest.raises(PEParseError):
        read_debug_directory(pe)
