"""Per-process capture ids seeded from the records already on disk."""

from __future__ import annotations

import logging
import os
import threading

from core.contracts import CaptureInitError

L = logging.getLogger("crash_capture.identity")

RECORD_EXT = ".json"


class IdentityAllocator:
    """Monotonic id source shared by every capture of one process.

    The first call creates the output directory and starts counting from the
    number of JSON records already in it. Processes sharing a directory can
    race on that count; the filename also embeds date and pid for that case.
    """

    def __init__(self, directory: str):
        self.directory = directory
        self._next: int | None = None
        self._lock = threading.Lock()

    def _seed(self) -> int:
        if self._next is None:
            try:
                os.makedirs(self.directory, exist_ok=True)
                self._next = count_records(self.directory)
            except OSError as e:
                raise CaptureInitError(
                    f"Cannot prepare capture directory {self.directory}: {e}"
                ) from e
            L.debug("Capture ids start at %d in %s", self._next, self.directory)
        return self._next

    def next(self) -> int:
        with self._lock:
            current = self._seed()
            self._next = current + 1
            return current

    def peek(self) -> int:
        with self._lock:
            return self._seed()


def count_records(directory: str) -> int:
    with os.scandir(directory) as entries:
        return sum(
            1
            for entry in entries
            if entry.name.endswith(RECORD_EXT) and entry.is_file()
        )


__all__ = ["IdentityAllocator", "RECORD_EXT", "count_records"]
