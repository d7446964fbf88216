"""HTTP utilities for symlocator."""
from __future__ import annotations

import threading
from typing import Mapping

import requests

from .constants import HTTP_TIMEOUT_SECONDS
from .exceptions import DownloadError

# Thread-local storage for sessions
_thread_local = threading.local()


def get_session() -> requests.Session:
    """Get thread-local requests session."""
    session = getattr(_thread_local, "session", None)
    if session is None:
        session = requests.Session()
        _thread_local.session = session
    return session


def http_get(
    url: str,
    *,
    headers: Mapping[str, str] | None = None,
    timeout: float = HTTP_TIMEOUT_SECONDS,
    session: requests.Session | None = None,
) -> requests.Response:
    """
    Make an HTTP GET request and buffer the body.

    The status code is not checked; symbol servers answer "not here" with
    ordinary error statuses and callers decide what counts as success.

    Args:
        url: URL to fetch
        headers: Extra request headers
        timeout: Request timeout in seconds
        session: Session to use (defaults to the thread-local session)

    Returns:
        Response object

    Raises:
        DownloadError: If the request fails at the transport level
    """
    try:
        return (session or get_session()).get(
            url,
            headers=dict(headers) if headers else None,
            timeout=timeout,
        )
    except requests.RequestException as e:
        raise DownloadError(f"Failed to fetch {url}: {e}") from e
