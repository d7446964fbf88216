"""Local symbol cache keyed by symbol index."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

from .constants import get_cache_dir
from .exceptions import CacheError
from .logging_config import log_debug, log_warning


def atomic_write(data: bytes, dest: Path) -> None:
    """
    Write bytes to a file atomically.

    Uses a temporary file in the destination directory and an atomic rename,
    so readers never observe a partially written file.

    Raises:
        OSError: If the directory cannot be created or the write fails
    """
    dest.parent.mkdir(parents=True, exist_ok=True)

    with tempfile.NamedTemporaryFile(
        delete=False,
        dir=str(dest.parent),
        suffix=".tmp"
    ) as tmp:
        tmp_path = Path(tmp.name)
        try:
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())
        except Exception:
            tmp.close()
            tmp_path.unlink(missing_ok=True)
            raise

    try:
        tmp_path.replace(dest)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise


class SymbolCache:
    """
    Content-addressed file store.

    Files live at ``root / index``. Only validated content is ever stored,
    so a hit is returned without re-validation. Entries are never
    invalidated; concurrent writers of one key are last-writer-wins.
    """

    def __init__(self, root: Path | str | None = None):
        self.root = Path(root) if root is not None else get_cache_dir()

    def path_for(self, relative: str) -> Path:
        """
        Map a relative index or path to its location under the cache root.

        Raises:
            CacheError: If the path is empty or escapes the cache root
        """
        if not relative or relative.startswith(("/", "\\")):
            raise CacheError("Invalid cache path", relative)

        root = self.root.resolve()
        path = (root / relative).resolve()
        if path == root or root not in path.parents:
            raise CacheError("Cache path escapes cache root", relative)
        return path

    def lookup(self, index: str) -> Path | None:
        """Return the cached file for an index, or None on a miss."""
        try:
            path = self.path_for(index)
        except CacheError as e:
            log_debug(f"Cache lookup skipped: {e}")
            return None

        if path.is_file():
            log_debug(f"Cache hit: {path}")
            return path
        return None

    def store(self, index: str, data: bytes) -> Path:
        """
        Store content under an index, creating directories as needed.

        Returns:
            Path of the stored file

        Raises:
            CacheError: On invalid paths, permission or I/O errors
        """
        path = self.path_for(index)
        try:
            atomic_write(data, path)
        except (OSError, ValueError) as e:
            raise CacheError(f"Failed to write cache entry: {e}", str(path)) from e

        log_debug(f"Cached {len(data)} bytes at {path}")
        return path

    def clear(self) -> int:
        """
        Delete all cached files.

        Returns:
            Number of files deleted
        """
        if not self.root.exists():
            return 0

        deleted = 0
        for path in sorted(self.root.rglob("*"), reverse=True):
            try:
                if path.is_dir():
                    path.rmdir()
                else:
                    path.unlink()
                    deleted += 1
            except OSError as e:
                log_warning(f"Failed to delete cache entry {path}: {e}")

        return deleted
