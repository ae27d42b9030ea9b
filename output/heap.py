"""Default heap snapshot writer backed by tracemalloc."""

from __future__ import annotations

import logging
import tracemalloc
from typing import Any, Callable

L = logging.getLogger("crash_capture.output.heap")

HeapWriter = Callable[[str], Any]


def start_heap_tracing(frames: int = 1) -> bool:
    """Start tracemalloc unless something else already did; True if we started it."""
    if tracemalloc.is_tracing():
        return False
    tracemalloc.start(max(1, int(frames)))
    L.debug("tracemalloc started frames=%d", frames)
    return True


def write_tracemalloc_snapshot(path: str) -> bool:
    if not tracemalloc.is_tracing():
        L.warning("Heap snapshot skipped, tracemalloc is not tracing: %s", path)
        return False
    try:
        tracemalloc.take_snapshot().dump(path)
    except OSError as e:
        L.warning("Heap snapshot write failed %s: %s", path, e)
        return False
    L.info("Heap snapshot written: %s", path)
    return True


__all__ = ["HeapWriter", "start_heap_tracing", "write_tracemalloc_snapshot"]
