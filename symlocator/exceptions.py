"""Custom exceptions for symlocator."""
from __future__ import annotations


class SymLocatorError(Exception):
    """Base exception for all symlocator errors."""
    pass


class DownloadError(SymLocatorError):
    """Failed to download a file."""
    pass


class PEParseError(SymLocatorError):
    """Failed to parse a PE file."""
    pass


class MetadataParseError(SymLocatorError):
    """Portable PDB metadata header is truncated or malformed."""
    pass


class CacheError(SymLocatorError):
    """Cache read/write error."""
    def __init__(self, message: str, path: str | None = None):
        self.path = path
        if path:
            message = f"{message} ({path})"
        super().__init__(message)
