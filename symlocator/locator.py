"""Symbol and source file resolution pipeline."""
from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Iterable

import requests

from .cache import SymbolCache
from .constants import HTTP_TIMEOUT_SECONDS, get_symbol_servers
from .exceptions import CacheError, DownloadError, PEParseError
from .fetch import fetch_symbol_file
from .http import http_get
from .logging_config import log_debug, log_info, log_warning
from .models import (
    ChecksumEntry,
    DebugDirectoryInfo,
    FailureKind,
    SourceFileResult,
    SymbolFileResult,
)
from .pe_parsing import PESource, read_debug_directory
from .symbol_server import compute_symbol_index, normalize_file_name


class SymbolLocator:
    """
    Resolves portable PDBs and source-link documents to local files.

    One locator is meant to live for the whole process and be shared by all
    resolutions; the session, when given, must be safe for concurrent use.

    Args:
        cache_dir: Cache root (defaults to the platform cache directory)
        servers: Symbol server base URLs (defaults to configured servers)
        session: Shared requests session (defaults to thread-local sessions)
        timeout: Per-request timeout in seconds
    """

    def __init__(
        self,
        cache_dir: Path | str | None = None,
        servers: Iterable[str] | None = None,
        session: requests.Session | None = None,
        timeout: float = HTTP_TIMEOUT_SECONDS,
    ):
        self.cache = SymbolCache(cache_dir)
        self.servers = tuple(servers) if servers is not None else get_symbol_servers()
        self.session = session
        self.timeout = timeout

    async def locate_symbol_file(
        self,
        info: DebugDirectoryInfo | None,
        checksums: Iterable[ChecksumEntry] = (),
        *,
        allow_remote_servers: bool = True,
    ) -> SymbolFileResult:
        """
        Resolve the PDB of a binary, reporting why it failed if it did.

        The cache is consulted first; servers are only queried on a miss and
        when remote lookups are allowed. Downloaded files are cached before
        their path is returned; a failed cache write yields no path.
        """
        if info is None:
            return SymbolFileResult(index=None, path=None, failure=FailureKind.NO_DEBUG_INFO)

        if not normalize_file_name(info.original_path):
            log_warning(f"CodeView entry has no PDB file name: {info.original_path!r}")
            return SymbolFileResult(index=None, path=None, failure=FailureKind.MALFORMED_INPUT)

        checksums = tuple(checksums)
        index = compute_symbol_index(info)

        cached = await asyncio.to_thread(self.cache.lookup, index)
        if cached is not None:
            return SymbolFileResult(index=index, path=cached, failure=None, from_cache=True)

        if not allow_remote_servers:
            log_debug(f"Remote symbol servers disabled, not fetching {index}")
            return SymbolFileResult(index=index, path=None, failure=FailureKind.REMOTE_DISABLED)

        fetched = await fetch_symbol_file(
            index,
            checksums,
            servers=self.servers,
            session=self.session,
            timeout=self.timeout,
        )
        if not fetched.success:
            log_info(f"Symbol file not found: {index}")
            return SymbolFileResult(index=index, path=None, failure=fetched.failure)

        try:
            path = await asyncio.to_thread(self.cache.store, index, fetched.content)
        except CacheError as e:
            log_warning(f"Failure when writing cache entry: {e}")
            return SymbolFileResult(index=index, path=None, failure=FailureKind.CACHE_WRITE_FAILED)

        return SymbolFileResult(index=index, path=path, failure=None)

    async def resolve_symbol_file(
        self,
        info: DebugDirectoryInfo | None,
        checksums: Iterable[ChecksumEntry] = (),
        *,
        allow_remote_servers: bool = True,
    ) -> Path | None:
        """
        Resolve the PDB of a binary to a local file.

        Returns:
            Path of the cached PDB, or None when it cannot be obtained
        """
        try:
            result = await self.locate_symbol_file(
                info, checksums, allow_remote_servers=allow_remote_servers
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log_warning(f"Unhandled exception while retrieving the symbol file path: {e}")
            return None
        return result.path

    async def locate_symbol_file_for_binary(
        self,
        binary: PESource,
        *,
        allow_remote_servers: bool = True,
    ) -> SymbolFileResult:
        """Read a binary's debug directory and resolve its PDB."""
        try:
            directory = await asyncio.to_thread(read_debug_directory, binary)
        except (PEParseError, OSError) as e:
            log_warning(f"Cannot read debug directory: {e}")
            return SymbolFileResult(index=None, path=None, failure=FailureKind.MALFORMED_INPUT)

        return await self.locate_symbol_file(
            directory.codeview,
            directory.checksums,
            allow_remote_servers=allow_remote_servers,
        )

    async def resolve_symbol_file_for_binary(
        self,
        binary: PESource,
        *,
        allow_remote_servers: bool = True,
    ) -> Path | None:
        """Like resolve_symbol_file, reading the debug directory from the binary."""
        try:
            result = await self.locate_symbol_file_for_binary(
                binary, allow_remote_servers=allow_remote_servers
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log_warning(f"Unhandled exception while retrieving the symbol file path: {e}")
            return None
        return result.path

    def _download_source(self, url: str, relative_path: str) -> SourceFileResult:
        """Blocking part of resolve_source_file, run in a worker thread."""
        try:
            self.cache.path_for(relative_path)
        except CacheError as e:
            log_warning(f"Rejected source path: {e}")
            return SourceFileResult(url=url, path=None, failure=FailureKind.MALFORMED_INPUT)

        try:
            with http_get(url, timeout=self.timeout, session=self.session) as response:
                if not response.ok:
                    log_debug(f"{url} answered {response.status_code}")
                    return SourceFileResult(url=url, path=None, failure=FailureKind.NOT_FOUND)
                content = response.content
        except DownloadError as e:
            log_info(f"Http request failure: {e}")
            return SourceFileResult(url=url, path=None, failure=FailureKind.NETWORK_ERROR)

        try:
            path = self.cache.store(relative_path, content)
        except CacheError as e:
            log_warning(f"Failure when writing source file: {e}")
            return SourceFileResult(url=url, path=None, failure=FailureKind.CACHE_WRITE_FAILED)

        log_debug(f"Wrote source file {path}")
        return SourceFileResult(url=url, path=path, failure=None)

    async def locate_source_file(self, url: str, relative_path: str) -> SourceFileResult:
        """Fetch a source-link document into the cache, reporting failures."""
        return await asyncio.to_thread(self._download_source, url, relative_path)

    async def resolve_source_file(self, url: str, relative_path: str) -> Path | None:
        """
        Fetch a source-link document to ``<cache root>/<relative_path>``.

        Returns:
            Path of the written file, or None if the server did not answer
            with a success status or the file could not be written
        """
        try:
            result = await self.locate_source_file(url, relative_path)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log_warning(f"Unhandled exception while retrieving source file {url}: {e}")
            return None
        return result.path


_default_locator: SymbolLocator | None = None


def get_default_locator() -> SymbolLocator:
    """Process-wide locator using the configured cache directory and servers."""
    global _default_locator
    if _default_locator is None:
        _default_locator = SymbolLocator()
    return _default_locator


async def resolve_symbol_file(
    info: DebugDirectoryInfo | None,
    checksums: Iterable[ChecksumEntry] = (),
    *,
    allow_remote_servers: bool = True,
) -> Path | None:
    """Resolve a PDB with the default locator. See SymbolLocator.resolve_symbol_file."""
    return await get_default_locator().resolve_symbol_file(
        info, checksums, allow_remote_servers=allow_remote_servers
    )


async def resolve_source_file(url: str, relative_path: str) -> Path | None:
    """Fetch a source file with the default locator. See SymbolLocator.resolve_source_file."""
    return await get_default_locator().resolve_source_file(url, relative_path)
