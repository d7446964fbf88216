"""Portable PDB metadata parsing and checksum validation."""
from __future__ import annotations

import hashlib
import struct
from typing import BinaryIO, Iterable, Iterator

from .constants import (
    METADATA_SIGNATURE,
    PDB_STREAM_NAME,
    PDB_ID_SIZE,
    SUPPORTED_CHECKSUM_ALGORITHMS,
)
from .exceptions import MetadataParseError
from .logging_config import log_debug
from .models import ChecksumEntry, StreamHeader

# Stream names are limited to 32 characters, not counting the terminator
MAX_STREAM_NAME_LENGTH = 32

# signature[4], major[2], minor[2], reserved[4], version length[4]
_METADATA_ROOT = struct.Struct("<IHHII")
# flags[2], stream count[2]
_STORAGE_HEADER = struct.Struct("<HH")
# offset[4], size[4]
_STREAM_HEADER = struct.Struct("<II")


def _unpack(layout: struct.Struct, data: bytes | bytearray, offset: int) -> tuple:
    """Bounds-checked unpack_from."""
    if offset < 0 or offset + layout.size > len(data):
        raise MetadataParseError(
            f"Truncated metadata header: need {layout.size} bytes at offset {offset}, "
            f"have {max(0, len(data) - offset)}"
        )
    return layout.unpack_from(data, offset)


def iter_stream_headers(data: bytes | bytearray) -> Iterator[StreamHeader]:
    """
    Lazily parse the metadata stream table of a portable PDB.

    Header layout (ECMA-335 II.24.2.1):
        signature u32, major u16, minor u16, reserved u32,
        version length u32, version string, flags u16, stream count u16,
        then per stream: offset u32, size u32, null-terminated name padded
        to a 4-byte boundary.

    Args:
        data: Complete portable PDB contents

    Yields:
        StreamHeader in table order

    Raises:
        MetadataParseError: On bad signature or a truncated header
    """
    signature, _major, _minor, _reserved, version_length = _unpack(_METADATA_ROOT, data, 0)
    if signature != METADATA_SIGNATURE:
        raise MetadataParseError(f"Bad metadata signature: {signature:#010x}")

    pos = _METADATA_ROOT.size + version_length
    _flags, stream_count = _unpack(_STORAGE_HEADER, data, pos)
    pos += _STORAGE_HEADER.size

    for _ in range(stream_count):
        offset, size = _unpack(_STREAM_HEADER, data, pos)
        pos += _STREAM_HEADER.size

        end = data.find(b"\x00", pos, pos + MAX_STREAM_NAME_LENGTH + 1)
        if end < 0:
            raise MetadataParseError(f"Unterminated stream name at offset {pos}")
        name = bytes(data[pos:end]).decode("ascii", errors="replace")

        # Skip terminator and padding
        pos = end + 1
        pos += -pos % 4

        yield StreamHeader(offset=offset, size=size, name=name)


def read_stream_headers(data: bytes | bytearray) -> list[StreamHeader]:
    """Parse the complete stream table. See iter_stream_headers."""
    return list(iter_stream_headers(data))


def find_stream_offset(data: bytes | bytearray, name: str = PDB_STREAM_NAME) -> int | None:
    """
    Find the file offset of a named metadata stream.

    Returns:
        Offset of the stream, or None if it is absent or the header is malformed
    """
    try:
        for header in iter_stream_headers(data):
            if header.name == name:
                return header.offset
    except MetadataParseError as e:
        log_debug(f"Cannot read stream table: {e}")
        return None

    log_debug(f"Stream {name} not found")
    return None


def _pdb_id_range(data: bytes | bytearray) -> tuple[int, int] | None:
    """Byte range of the PDB id inside the #Pdb stream."""
    offset = find_stream_offset(data, PDB_STREAM_NAME)
    if offset is None:
        return None
    end = offset + PDB_ID_SIZE
    if end > len(data):
        log_debug(f"{PDB_STREAM_NAME} stream offset {offset} outside of file")
        return None
    return offset, end


def compute_pdb_checksum(data: bytes | bytearray, algorithm_name: str) -> bytes:
    """
    Compute the checksum recorded in a PE's PDB checksum entry.

    The digest covers the whole file with the 20-byte PDB id zeroed.

    Args:
        data: Complete portable PDB contents
        algorithm_name: "SHA256", "SHA384" or "SHA512"

    Raises:
        ValueError: If the algorithm is not supported
        MetadataParseError: If the #Pdb stream cannot be located
    """
    algorithm = SUPPORTED_CHECKSUM_ALGORITHMS.get(algorithm_name)
    if algorithm is None:
        raise ValueError(f"Unsupported checksum algorithm: {algorithm_name}")

    id_range = _pdb_id_range(data)
    if id_range is None:
        raise MetadataParseError(f"No {PDB_STREAM_NAME} stream")

    start, end = id_range
    redacted = bytearray(data)
    redacted[start:end] = bytes(PDB_ID_SIZE)
    return hashlib.new(algorithm, redacted).digest()


def validate_checksums(buffer: bytearray | bytes, checksums: Iterable[ChecksumEntry]) -> bool:
    """
    Check a portable PDB against the checksums of its PE.

    The PDB id is zeroed in place while hashing and always put back before
    returning, so the caller's buffer is unchanged afterwards. Checksums with
    an unsupported algorithm are skipped.

    Args:
        buffer: Complete portable PDB contents (bytes are copied first)
        checksums: Candidate checksums; the first match wins

    Returns:
        True if any checksum matches, False on mismatch or malformed data
    """
    if not isinstance(buffer, bytearray):
        buffer = bytearray(buffer)

    id_range = _pdb_id_range(buffer)
    if id_range is None:
        return False

    start, end = id_range
    pdb_id = bytes(buffer[start:end])
    buffer[start:end] = bytes(PDB_ID_SIZE)
    try:
        for checksum in checksums:
            algorithm = SUPPORTED_CHECKSUM_ALGORITHMS.get(checksum.algorithm_name)
            if algorithm is None:
                log_debug(f"Skipping unsupported checksum algorithm {checksum.algorithm_name}")
                continue

            if hashlib.new(algorithm, buffer).digest() == checksum.digest:
                return True

        log_debug("No checksum matched")
        return False
    finally:
        buffer[start:end] = pdb_id


def validate_stream(stream: BinaryIO, checksums: Iterable[ChecksumEntry]) -> bool:
    """
    Validate a seekable binary stream holding a portable PDB.

    The stream is rewound to the start on every exit path.
    """
    try:
        stream.seek(0)
        return validate_checksums(bytearray(stream.read()), checksums)
    finally:
        stream.seek(0)
