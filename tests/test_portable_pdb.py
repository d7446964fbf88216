import io
import struct

import pytest

from symlocator.exceptions import MetadataParseError
from symlocator.models import ChecksumEntry
from symlocator.portable_pdb import (
    compute_pdb_checksum,
    find_stream_offset,
    read_stream_headers,
    validate_checksums,
    validate_stream,
)
from tests.builders import build_portable_pdb


def _flip_bit(checksum: ChecksumEntry, index: int) -> ChecksumEntry:
    digest = bytearray(checksum.digest)
    digest[index // 8] ^= 1 << (index % 8)
    return ChecksumEntry(checksum.algorithm_name, bytes(digest))


def test_reads_stream_table():
    pdb = build_portable_pdb()
    headers = read_stream_headers(pdb.data)
    assert [h.name for h in headers] == ["#Pdb", "#~", "#Strings", "#GUID"]
    assert headers[0].offset == pdb.pdb_offset
    assert headers[0].size == 32


def test_finds_pdb_stream_when_not_first():
    pdb = build_portable_pdb(stream_names=("#~", "#Strings", "#Pdb"))
    assert find_stream_offset(pdb.data) == pdb.pdb_offset


@pytest.mark.parametrize("name_length", [31, 32])
def test_long_stream_name_before_pdb_stream(name_length):
    long_name = "#" + "x" * (name_length - 1)
    pdb = build_portable_pdb(stream_names=(long_name, "#Pdb"))

    assert [h.name for h in read_stream_headers(pdb.data)] == [long_name, "#Pdb"]
    assert find_stream_offset(pdb.data) == pdb.pdb_offset


def test_overlong_stream_name_is_rejected():
    pdb = build_portable_pdb(stream_names=("#" + "x" * 40, "#Pdb"))
    with pytest.raises(MetadataParseError):
        read_stream_headers(pdb.data)
    assert find_stream_offset(pdb.data) is None


def test_missing_pdb_stream():
    pdb = build_portable_pdb(stream_names=("#~", "#Strings"))
    assert find_stream_offset(pdb.data) is None


def test_zero_streams():
    pdb = build_portable_pdb(stream_names=())
    assert read_stream_headers(pdb.data) == []
    assert find_stream_offset(pdb.data) is None


@pytest.mark.parametrize("length", [0, 3, 10, 16, 27, 30, 40])
def test_truncated_header_is_not_found(length):
    pdb = build_portable_pdb()
    assert find_stream_offset(pdb.data[:length]) is None


def test_truncated_header_raises_parse_error():
    pdb = build_portable_pdb()
    with pytest.raises(MetadataParseError):
        read_stream_headers(pdb.data[:30])


def test_bad_signature():
    pdb = build_portable_pdb()
    data = b"XXXX" + pdb.data[4:]
    with pytest.raises(MetadataParseError):
        read_stream_headers(data)
    assert find_stream_offset(data) is None


def test_huge_version_length_is_not_found():
    pdb = build_portable_pdb()
    data = bytearray(pdb.data)
    struct.pack_into("<I", data, 12, 0xFFFFFFF0)
    assert find_stream_offset(data) is None


def test_stream_offset_outside_file_fails_validation():
    pdb = build_portable_pdb()
    checksum = pdb.checksum()
    data = bytearray(pdb.data)
    # First stream header follows the 12-byte version string
    struct.pack_into("<I", data, 16 + 12 + 4, len(data) + 100)
    assert validate_checksums(data, [checksum]) is False


@pytest.mark.parametrize("algorithm", ["SHA256", "SHA384", "SHA512"])
def test_valid_checksum(algorithm):
    pdb = build_portable_pdb()
    assert validate_checksums(bytearray(pdb.data), [pdb.checksum(algorithm)]) is True


def test_checksum_matches_compute_pdb_checksum():
    pdb = build_portable_pdb()
    assert compute_pdb_checksum(pdb.data, "SHA256") == pdb.checksum("SHA256").digest


def test_checksum_ignores_pdb_id():
    first = build_portable_pdb(pdb_id=b"\x01" * 20)
    second = build_portable_pdb(pdb_id=b"\x02" * 20)
    assert validate_checksums(second.data, [first.checksum()]) is True


@pytest.mark.parametrize("bit", [0, 7, 100, 255])
def test_flipped_digest_bit_fails(bit):
    pdb = build_portable_pdb()
    assert validate_checksums(bytearray(pdb.data), [_flip_bit(pdb.checksum(), bit)]) is False


def test_changed_content_fails():
    pdb = build_portable_pdb()
    checksum = pdb.checksum()
    data = bytearray(pdb.data)
    data[-1] ^= 0xFF
    assert validate_checksums(data, [checksum]) is False


def test_any_matching_checksum_wins():
    pdb = build_portable_pdb()
    checksums = [
        _flip_bit(pdb.checksum("SHA256"), 3),
        ChecksumEntry("MD5", b"\x00" * 16),
        pdb.checksum("SHA512"),
    ]
    assert validate_checksums(pdb.data, checksums) is True


def test_unsupported_algorithms_are_skipped():
    pdb = build_portable_pdb()
    assert validate_checksums(pdb.data, [ChecksumEntry("MD5", b"\x00" * 16)]) is False
    assert validate_checksums(pdb.data, []) is False


def test_compute_rejects_unknown_algorithm():
    pdb = build_portable_pdb()
    with pytest.raises(ValueError):
        compute_pdb_checksum(pdb.data, "CRC32")


@pytest.mark.parametrize("valid", [True, False])
def test_buffer_restored_after_validation(valid):
    pdb = build_portable_pdb()
    checksum = pdb.checksum() if valid else _flip_bit(pdb.checksum(), 0)
    buffer = bytearray(pdb.data)
    assert validate_checksums(buffer, [checksum]) is valid
    assert bytes(buffer) == pdb.data


def test_buffer_restored_when_hashing_fails():
    class ExplodingChecksum:
        algorithm_name = "SHA256"

        @property
        def digest(self):
            raise RuntimeError("boom")

    pdb = build_portable_pdb()
    buffer = bytearray(pdb.data)
    with pytest.raises(RuntimeError):
        validate_checksums(buffer, [ExplodingChecksum()])
    assert bytes(buffer) == pdb.data


@pytest.mark.parametrize("valid", [True, False])
def test_stream_position_restored(valid):
    pdb = build_portable_pdb()
    checksum = pdb.checksum() if valid else _flip_bit(pdb.checksum(), 1)
    stream = io.BytesIO(pdb.data)
    stream.seek(17)
    assert validate_stream(stream, [checksum]) is valid
    assert stream.tell() == 0
    assert stream.getvalue() == pdb.data
