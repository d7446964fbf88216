"""
symlocator: Locate portable PDBs and source-link files for .NET binaries.

This package derives the symbol server key of a binary from its PE debug
directory, races the configured symbol servers for the matching portable PDB,
validates it against the checksums recorded in the binary and keeps it in a
local cache.

"""

from __future__ import annotations

__version__ = "0.1.0"
__author__ = "symlocator contributors"

from .exceptions import (
    SymLocatorError,
    DownloadError,
    PEParseError,
    MetadataParseError,
    CacheError,
)
from .models import (
    ChecksumEntry,
    DebugDirectory,
    DebugDirectoryInfo,
    FailureCategory,
    FailureKind,
    SourceFileResult,
    SymbolFileResult,
)
from .cache import SymbolCache
from .fetch import fetch_symbol_file
from .locator import SymbolLocator, resolve_symbol_file, resolve_source_file
from .pe_parsing import read_debug_directory
from .portable_pdb import find_stream_offset, validate_checksums
from .symbol_server import compute_symbol_index

__all__ = [
    # Version
    "__version__",
    # Exceptions
    "SymLocatorError",
    "DownloadError",
    "PEParseError",
    "MetadataParseError",
    "CacheError",
    # Models
    "ChecksumEntry",
    "DebugDirectory",
    "DebugDirectoryInfo",
    "FailureCategory",
    "FailureKind",
    "SourceFileResult",
    "SymbolFileResult",
    # Core functions
    "SymbolLocator",
    "resolve_symbol_file",
    "resolve_source_file",
    "fetch_symbol_file",
    "read_debug_directory",
    "compute_symbol_index",
    "find_stream_offset",
    "validate_checksums",
    # Cache
    "SymbolCache",
]
