"""Constants and configuration for symlocator."""

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

# =============================================================================
# Network Configuration
# =============================================================================

MS_SYMBOL_SERVER = "https://msdl.microsoft.com/download/symbols/"
NUGET_SYMBOL_SERVER = "https://symbols.nuget.org/download/symbols/"

DEFAULT_SYMBOL_SERVERS: tuple[str, ...] = (MS_SYMBOL_SERVER, NUGET_SYMBOL_SERVER)

HTTP_TIMEOUT_SECONDS = 30
HTTP_OK = 200

# Optional request header letting servers pre-filter by checksum
SYMBOL_CHECKSUM_HEADER = "SymbolChecksum"

# =============================================================================
# PE Format Constants
# =============================================================================

# Debug types
DEBUG_TYPE_CODEVIEW = 2
DEBUG_TYPE_PDB_CHECKSUM = 19

# Minor version of a CodeView entry that points at a portable PDB ("PM")
PORTABLE_CODEVIEW_MINOR_VERSION = 0x504D

# CodeView signature
CODEVIEW_RSDS = b"RSDS"

# RSDS header size (signature + GUID + age)
CODEVIEW_RSDS_HEADER_SIZE = 24  # 4 + 16 + 4

# =============================================================================
# Symbol Index
# =============================================================================

# Portable PDBs carry no age, the key uses this in its place
PORTABLE_PDB_AGE_SUFFIX = "FFFFFFFF"

# =============================================================================
# Portable PDB (ECMA-335 metadata) Constants
# =============================================================================

METADATA_SIGNATURE = 0x424A5342  # "BSJB"
PDB_STREAM_NAME = "#Pdb"

# The PDB id at the start of the #Pdb stream is excluded from its own checksum
PDB_ID_SIZE = 20

# Checksum algorithm names as stored in the PE debug directory
SUPPORTED_CHECKSUM_ALGORITHMS: dict[str, str] = {
    "SHA256": "sha256",
    "SHA384": "sha384",
    "SHA512": "sha512",
}

# =============================================================================
# Cache Configuration
# =============================================================================


def get_cache_dir() -> Path:
    """
    Get platform-appropriate symbol cache directory.

    Priority order:
    1. SYMLOCATOR_CACHE environment variable
    2. Platform-specific default:
       - Windows: %TEMP%\\SymbolCache
       - Other: ~/.dotnet/symbolcache (shared with the dotnet tooling)

    Returns:
        Path to cache directory (may not exist yet)
    """
    env_cache = os.environ.get("SYMLOCATOR_CACHE")
    if env_cache:
        return Path(env_cache).expanduser().resolve()

    if sys.platform == "win32":
        return Path(tempfile.gettempdir()) / "SymbolCache"
    return Path.home() / ".dotnet" / "symbolcache"


def get_symbol_servers() -> tuple[str, ...]:
    """
    Get the symbol server bases to query.

    SYMLOCATOR_SERVERS may hold a ';'-separated list of server URLs and
    replaces the defaults when set.
    """
    env_servers = os.environ.get("SYMLOCATOR_SERVERS")
    if env_servers:
        servers = tuple(s.strip() for s in env_servers.split(";") if s.strip())
        if servers:
            return servers
    return DEFAULT_SYMBOL_SERVERS
