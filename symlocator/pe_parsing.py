"""PE debug directory parsing."""
from __future__ import annotations

import uuid
from pathlib import Path
from typing import Iterable, Union

import pefile

from .constants import (
    DEBUG_TYPE_CODEVIEW,
    DEBUG_TYPE_PDB_CHECKSUM,
    PORTABLE_CODEVIEW_MINOR_VERSION,
    CODEVIEW_RSDS,
    CODEVIEW_RSDS_HEADER_SIZE,
)
from .exceptions import PEParseError
from .logging_config import log_debug
from .models import (
    ChecksumEntry,
    DebugDirectory,
    DebugDirectoryEntry,
    DebugDirectoryInfo,
)

PESource = Union[bytes, bytearray, str, Path, pefile.PE]

_DEBUG_DIRECTORY_INDEX = pefile.DIRECTORY_ENTRY["IMAGE_DIRECTORY_ENTRY_DEBUG"]


def is_portable_codeview(entry: DebugDirectoryEntry) -> bool:
    """Whether a debug entry is a CodeView record for a portable PDB."""
    return (
        entry.type == DEBUG_TYPE_CODEVIEW
        and entry.minor_version == PORTABLE_CODEVIEW_MINOR_VERSION
    )


def parse_codeview_data(data: bytes) -> DebugDirectoryInfo | None:
    """
    Parse an RSDS CodeView payload.

    Layout: signature[4], GUID[16], age[4], null-terminated UTF-8 path.

    Args:
        data: Raw payload of the CodeView debug entry

    Returns:
        DebugDirectoryInfo, or None if the payload is not RSDS or is truncated
    """
    if len(data) < CODEVIEW_RSDS_HEADER_SIZE or data[:4] != CODEVIEW_RSDS:
        return None

    # GUID fields Data1..Data3 are little-endian on disk
    identifier = uuid.UUID(bytes_le=bytes(data[4:20]))

    path_data = data[CODEVIEW_RSDS_HEADER_SIZE:]
    original_path = path_data.split(b"\x00", 1)[0].decode("utf-8", errors="replace")

    return DebugDirectoryInfo(identifier=identifier, original_path=original_path)


def parse_pdb_checksum_data(data: bytes) -> ChecksumEntry | None:
    """
    Parse a PDB checksum payload.

    Layout: null-terminated UTF-8 algorithm name followed by the digest.
    """
    name, sep, digest = bytes(data).partition(b"\x00")
    if not sep or not name or not digest:
        return None
    return ChecksumEntry(
        algorithm_name=name.decode("utf-8", errors="replace"),
        digest=digest,
    )


def read_debug_entries(entries: Iterable[DebugDirectoryEntry]) -> DebugDirectory:
    """
    Collect the portable CodeView entry and all checksum entries.

    Checksums keep directory order. When several portable CodeView entries
    are present the last one scanned is kept.

    Args:
        entries: Debug directory records in directory order

    Returns:
        DebugDirectory; its codeview is None when the image has no portable
        CodeView entry
    """
    codeview: DebugDirectoryInfo | None = None
    checksums: list[ChecksumEntry] = []

    for entry in entries:
        if entry.type == DEBUG_TYPE_PDB_CHECKSUM:
            checksum = parse_pdb_checksum_data(entry.data)
            if checksum is None:
                log_debug("Skipping malformed PDB checksum entry")
                continue
            checksums.append(checksum)
        elif is_portable_codeview(entry):
            info = parse_codeview_data(entry.data)
            if info is None:
                log_debug("Skipping malformed portable CodeView entry")
                continue
            codeview = info

    return DebugDirectory(codeview=codeview, checksums=tuple(checksums))


def _read_entry_data(pe: pefile.PE, dbg: pefile.Structure) -> bytes | None:
    """Read the payload of a debug directory entry, None if out of bounds."""
    size = dbg.SizeOfData
    if size == 0:
        return None

    if dbg.AddressOfRawData:
        try:
            data = pe.get_data(dbg.AddressOfRawData, size)
        except pefile.PEFormatError:
            data = b""
    else:
        # Not mapped into the image, only present in the file
        data = pe.__data__[dbg.PointerToRawData:dbg.PointerToRawData + size]

    if len(data) < size:
        return None
    return bytes(data)


def load_debug_entries(pe: pefile.PE) -> list[DebugDirectoryEntry]:
    """
    Extract raw debug directory records from a parsed PE.

    Args:
        pe: pefile.PE instance (may have been loaded with fast_load)

    Returns:
        List of DebugDirectoryEntry in directory order
    """
    if not hasattr(pe, "DIRECTORY_ENTRY_DEBUG"):
        pe.parse_data_directories(directories=[_DEBUG_DIRECTORY_INDEX])

    entries: list[DebugDirectoryEntry] = []
    for debug in getattr(pe, "DIRECTORY_ENTRY_DEBUG", []):
        dbg = debug.struct
        data = _read_entry_data(pe, dbg)
        if data is None:
            log_debug(f"Debug entry type {dbg.Type} has no readable data")
            continue
        entries.append(DebugDirectoryEntry(
            type=dbg.Type,
            major_version=dbg.MajorVersion,
            minor_version=dbg.MinorVersion,
            data=data,
        ))
    return entries


def open_pe(source: bytes | bytearray | str | Path) -> pefile.PE:
    """
    Load a PE image without parsing its data directories.

    Raises:
        PEParseError: If the data is not a valid PE image
        OSError: If the file cannot be read
    """
    try:
        if isinstance(source, (bytes, bytearray)):
            return pefile.PE(data=bytes(source), fast_load=True)
        return pefile.PE(str(source), fast_load=True)
    except pefile.PEFormatError as e:
        raise PEParseError(f"Invalid PE image: {e}") from e


def read_debug_directory(source: PESource) -> DebugDirectory:
    """
    Read the symbol-relevant debug directory entries of a PE image.

    Args:
        source: Raw PE bytes, a path to a PE file, or a parsed pefile.PE

    Returns:
        DebugDirectory with the portable CodeView entry (or None) and the
        checksum entries

    Raises:
        PEParseError: If the image is not a valid PE
        OSError: If the file cannot be read
    """
    owned = not isinstance(source, pefile.PE)
    pe = open_pe(source) if owned else source
    try:
        return read_debug_entries(load_debug_entries(pe))
    except pefile.PEFormatError as e:
        raise PEParseError(f"Invalid debug directory: {e}") from e
    finally:
        # Caller-supplied images stay open
        if owned:
            pe.close()
