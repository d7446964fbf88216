"""Symbol server key conventions (SSQP) for portable PDBs."""

from __future__ import annotations

import uuid
from typing import Iterable
from urllib.parse import quote, urljoin

from .constants import PORTABLE_PDB_AGE_SUFFIX
from .models import ChecksumEntry, DebugDirectoryInfo


def format_identifier(identifier: uuid.UUID) -> str:
    """Format a PDB identifier as 32 uppercase hex digits without dashes."""
    return identifier.hex.upper()


def normalize_file_name(original_path: str) -> str:
    """
    Reduce a stored PDB path to its escaped, lowercased file name.

    Both separator conventions are accepted. Each '/'-separated segment is
    percent-encoded on its own so structural separators stay literal.

    Examples:
        >>> normalize_file_name("C:\\\\build\\\\obj\\\\Foo.pdb")
        'foo.pdb'
        >>> normalize_file_name("/src/My Lib.pdb")
        'my%20lib.pdb'
    """
    file_name = original_path.replace("\\", "/").rsplit("/", 1)[-1].lower()
    return "/".join(quote(segment, safe="") for segment in file_name.split("/"))


def compute_symbol_index(info: DebugDirectoryInfo) -> str:
    """
    Compute the symbol server key of a portable PDB.

    The key is shared with public symbol servers, so the format must be
    reproduced exactly: ``name/<GUID>FFFFFFFF/name``.

    Args:
        info: Portable CodeView entry of the binary

    Returns:
        Relative path usable both as server URL suffix and cache sub-path

    Examples:
        >>> import uuid
        >>> info = DebugDirectoryInfo(
        ...     uuid.UUID("12345678-1234-1234-1234-123456789ABC"), "Foo.pdb")
        >>> compute_symbol_index(info)
        'foo.pdb/12345678123412341234123456789ABCFFFFFFFF/foo.pdb'
    """
    name = normalize_file_name(info.original_path)
    key = f"{format_identifier(info.identifier)}{PORTABLE_PDB_AGE_SUFFIX}"
    return f"{name}/{key}/{name}"


def build_symbol_url(server: str, index: str) -> str:
    """Resolve a symbol index relative to a server base URL."""
    if not server.endswith("/"):
        server = f"{server}/"
    return urljoin(server, index)


def build_symbol_urls(index: str, servers: Iterable[str]) -> list[str]:
    """Compute one absolute URL per configured server, in server order."""
    return [build_symbol_url(server, index) for server in servers]


def format_checksum_header(checksums: Iterable[ChecksumEntry]) -> str:
    """Render checksums as 'alg1:hex1;alg2:hex2' for the SymbolChecksum header."""
    return ";".join(checksum.as_header_value() for checksum in checksums)
