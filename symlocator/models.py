"""Data models for symlocator."""
from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class DebugDirectoryInfo:
    """Portable CodeView entry: the PDB identifier and its original build path."""
    identifier: uuid.UUID
    original_path: str


@dataclass(frozen=True)
class ChecksumEntry:
    """PDB checksum debug directory entry."""
    algorithm_name: str
    digest: bytes

    def as_header_value(self) -> str:
        """Render as 'ALGORITHM:hexdigest' for the SymbolChecksum header."""
        return f"{self.algorithm_name}:{self.digest.hex()}"


@dataclass(frozen=True)
class DebugDirectoryEntry:
    """Raw debug directory record with its payload bytes."""
    type: int
    major_version: int
    minor_version: int
    data: bytes


@dataclass(frozen=True)
class DebugDirectory:
    """Everything symbol resolution needs from a PE debug directory."""
    codeview: DebugDirectoryInfo | None
    checksums: tuple[ChecksumEntry, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class StreamHeader:
    """Entry of the portable PDB metadata stream table."""
    offset: int
    size: int
    name: str


class FailureCategory(enum.Enum):
    """Coarse classification of why no file was produced."""
    ABSENCE = "absence"
    INFRASTRUCTURE = "infrastructure"
    MALFORMED_INPUT = "malformed_input"


class FailureKind(enum.Enum):
    """Reason a resolution produced no local file."""
    NO_DEBUG_INFO = "no_debug_info"
    REMOTE_DISABLED = "remote_disabled"
    NOT_FOUND = "not_found"
    CHECKSUM_MISMATCH = "checksum_mismatch"
    NETWORK_ERROR = "network_error"
    CACHE_WRITE_FAILED = "cache_write_failed"
    MALFORMED_INPUT = "malformed_input"

    @property
    def category(self) -> FailureCategory:
        if self in (FailureKind.NETWORK_ERROR, FailureKind.CACHE_WRITE_FAILED):
            return FailureCategory.INFRASTRUCTURE
        if self is FailureKind.MALFORMED_INPUT:
            return FailureCategory.MALFORMED_INPUT
        return FailureCategory.ABSENCE


@dataclass(frozen=True)
class FetchResult:
    """Outcome of racing the configured symbol servers."""
    content: bytes | None
    failure: FailureKind | None = None
    server: str | None = None

    @property
    def success(self) -> bool:
        """Whether a (validated) body was obtained."""
        return self.content is not None


@dataclass(frozen=True)
class SymbolFileResult:
    """Result of resolving a symbol file."""
    index: str | None
    path: Path | None
    failure: FailureKind | None
    from_cache: bool = False

    @property
    def success(self) -> bool:
        """Whether a local PDB path is available."""
        return self.path is not None


@dataclass(frozen=True)
class SourceFileResult:
    """Result of fetching a source-link document."""
    url: str
    path: Path | None
    failure: FailureKind | None

    @property
    def success(self) -> bool:
        """Whether the source file was written locally."""
        return self.path is not None
