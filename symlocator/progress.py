"""Progress bar for batch resolutions using tqdm."""
from __future__ import annotations

import threading
from typing import Any

from tqdm import tqdm


class ProgressBar:
    """Thread-safe progress bar counting resolved and missing files."""

    def __init__(self, total: int, enabled: bool = True):
        """
        Initialize progress bar.

        Args:
            total: Total number of items
            enabled: Whether to display progress
        """
        self.total = max(1, total)
        self.enabled = enabled
        self.done = 0
        self.found = 0
        self.missing = 0
        self._lock = threading.Lock()

        if self.enabled:
            self._pbar = tqdm(
                total=total,
                unit="file",
                bar_format="{l_bar}{bar}| {n_fmt}/{total_fmt} [{elapsed}<{remaining}] {postfix}",
                leave=True,
                dynamic_ncols=True,
            )
            self._update_postfix()
        else:
            self._pbar = None

    def _update_postfix(self) -> None:
        if self._pbar is not None:
            self._pbar.set_postfix_str(
                f"[✓ {self.found} ✗ {self.missing}]",
                refresh=True
            )

    def update(self, found: bool) -> None:
        """
        Update progress by one item.

        Args:
            found: Whether this item resolved to a local file
        """
        with self._lock:
            self.done += 1
            if found:
                self.found += 1
            else:
                self.missing += 1

            if self._pbar is not None:
                self._pbar.update(1)
                self._update_postfix()

    def finish(self) -> None:
        """Ensure progress bar is complete and closed."""
        if self._pbar is not None:
            remaining = self.total - self._pbar.n
            if remaining > 0:
                self._pbar.update(remaining)

            self._pbar.close()

    def __enter__(self) -> ProgressBar:
        return self

    def __exit__(self, *args: Any) -> None:
        self.finish()
