"""Concurrent symbol server queries."""
from __future__ import annotations

import asyncio
from typing import Iterable, Mapping

import requests

from .constants import (
    HTTP_OK,
    HTTP_TIMEOUT_SECONDS,
    SYMBOL_CHECKSUM_HEADER,
    get_symbol_servers,
)
from .exceptions import DownloadError
from .http import http_get
from .logging_config import log_debug, log_info
from .models import ChecksumEntry, FailureKind, FetchResult
from .portable_pdb import validate_checksums
from .symbol_server import build_symbol_urls, format_checksum_header


def _get(
    url: str,
    headers: Mapping[str, str],
    timeout: float,
    session: requests.Session | None,
) -> tuple[str, int, bytes | None]:
    """
    Blocking GET run in a worker thread.

    Returns:
        Tuple of (url, status_code, body); body is only read for HTTP 200
    """
    with http_get(url, headers=headers, timeout=timeout, session=session) as response:
        if response.status_code != HTTP_OK:
            return url, response.status_code, None
        return url, response.status_code, response.content


def _abandon(tasks: list[asyncio.Task]) -> None:
    """Cancel outstanding requests and drop the results of finished ones."""
    for task in tasks:
        if not task.done():
            task.cancel()
        elif not task.cancelled():
            # Mark failures as retrieved so they are not reported at shutdown
            task.exception()


async def fetch_symbol_file(
    index: str,
    checksums: Iterable[ChecksumEntry] = (),
    *,
    servers: Iterable[str] | None = None,
    session: requests.Session | None = None,
    timeout: float = HTTP_TIMEOUT_SECONDS,
) -> FetchResult:
    """
    Race all symbol servers for a symbol file.

    Every server is queried at once and answers are consumed in completion
    order. A 200 answer is accepted if it matches one of the checksums, or
    unconditionally when there are none. The first accepted body wins and the
    remaining requests are cancelled. Transport failures only lose that
    server's turn in the race.

    Args:
        index: Symbol index (relative URL)
        checksums: PDB checksum entries of the binary
        servers: Server base URLs (defaults to configured servers)
        session: Shared requests session (defaults to thread-local sessions)
        timeout: Per-request timeout in seconds

    Returns:
        FetchResult holding the body, or the reason nothing was accepted
    """
    checksums = tuple(checksums)
    urls = build_symbol_urls(index, get_symbol_servers() if servers is None else servers)
    if not urls:
        return FetchResult(content=None, failure=FailureKind.NOT_FOUND)

    headers: dict[str, str] = {}
    if checksums:
        headers[SYMBOL_CHECKSUM_HEADER] = format_checksum_header(checksums)

    tasks = [
        asyncio.create_task(asyncio.to_thread(_get, url, headers, timeout, session))
        for url in urls
    ]

    transport_failures = 0
    mismatches = 0
    try:
        for next_done in asyncio.as_completed(tasks):
            try:
                url, status, content = await next_done
            except DownloadError as e:
                transport_failures += 1
                log_info(f"Http request failure: {e}")
                continue

            if status != HTTP_OK or content is None:
                log_debug(f"{url} answered {status}")
                continue

            if checksums and not validate_checksums(content, checksums):
                mismatches += 1
                log_info(f"Invalid symbol file loaded from {url}")
                continue

            log_debug(f"Accepted {len(content)} bytes from {url}")
            return FetchResult(content=content, server=url)
    finally:
        _abandon(tasks)

    if transport_failures == len(tasks):
        failure = FailureKind.NETWORK_ERROR
    elif mismatches:
        failure = FailureKind.CHECKSUM_MISMATCH
    else:
        failure = FailureKind.NOT_FOUND
    return FetchResult(content=None, failure=failure)
