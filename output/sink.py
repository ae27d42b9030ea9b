# -- coding: utf-8 --
"""PersistenceSink: console, JSON-on-disk, and heap dump outputs for a capture."""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

from output.heap import HeapWriter, write_tracemalloc_snapshot
from snapshot.record import CaptureRecord
from utils.path_time import build_capture_path, exceptions_dir

L = logging.getLogger("crash_capture.output.sink")

JSON_EXT = ".json"
HEAP_EXT = ".heapsnapshot"


class PersistenceSink:
    def __init__(
        self,
        directory: str,
        *,
        heap_writer: HeapWriter | None = None,
        stream: IO[str] | None = None,
    ):
        self.directory = directory
        self._heap_writer = heap_writer or write_tracemalloc_snapshot
        self._stream = stream

    @property
    def exceptions_dir(self) -> str:
        return exceptions_dir(self.directory)

    def to_console(self, record: CaptureRecord) -> None:
        """Write the framed, pretty-printed snapshot to stderr.

        A rendering failure is logged and re-raised; the caller decides whether
        to continue so it never masks the original fault. A failing stream
        (closed, broken pipe) is only logged.
        """
        stream = self._stream or sys.stderr
        try:
            body = record.to_json(indent=2)
        except (TypeError, ValueError):
            L.exception("Capture %s could not be rendered", record.filename)
            raise
        try:
            stream.write(f"\nException ({record.filename}) :\n{body}\n\n")
            stream.flush()
        except (OSError, ValueError) as e:
            # Closed or broken stderr; the disk record still follows.
            L.error("Console output for %s failed: %s", record.filename, e)

    def to_disk(self, record: CaptureRecord) -> str | None:
        """Write `<dir>/exceptions/<filename>.json`; failures are logged, never raised."""
        path = build_capture_path(self.directory, record.filename, JSON_EXT)
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            payload = record.to_json()
            with open(path, "w", encoding="utf-8") as f:
                f.write(payload)
        except (OSError, TypeError, ValueError) as e:
            L.error("Failed to write exception to disk %s: %s", path, e)
            return None
        L.info("Exception written to %s", path)
        return path

    def dump_heap(self, record: CaptureRecord) -> str:
        return self.dump_heap_to(record.filename)

    def dump_heap_to(self, name: str) -> str:
        path = build_capture_path(self.directory, name, HEAP_EXT)
        self._heap_writer(path)
        return path


__all__ = ["HEAP_EXT", "JSON_EXT", "PersistenceSink"]
