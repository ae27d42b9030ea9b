"""Shared async-loop primitives and the single-shot completion gate."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Coroutine
from concurrent.futures import TimeoutError
from typing import Any, Callable

L = logging.getLogger("crash_capture.lifecycle")


class LoopRunner:
    """Owns a private background asyncio loop and provides sync bridge helpers.

    Relay work and deadline timers for a capture are both scheduled here, so
    they share one cooperative queue regardless of which thread faulted.
    """

    def __init__(self, *, logger: logging.Logger | None = None):
        self._logger = logger or L
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._stopped = False
        self._lock = threading.Lock()
        self._loop_thread_ident: int | None = None

    def _ensure_loop(self) -> asyncio.AbstractEventLoop:
        with self._lock:
            if self._stopped:
                raise RuntimeError("Async loop already stopped")
            if self._loop and self._thread and self._thread.is_alive():
                return self._loop
            loop = asyncio.new_event_loop()
            ready = threading.Event()
            self._loop = loop
            self._loop_thread_ident = None

            def _runner():
                asyncio.set_event_loop(loop)
                self._loop_thread_ident = threading.get_ident()
                ready.set()
                loop.run_forever()

            self._thread = threading.Thread(
                target=_runner, name="crash-capture-loop", daemon=True
            )
            self._thread.start()
            ready.wait(timeout=0.5)
            return loop

    @property
    def in_loop_thread(self) -> bool:
        return (
            self._loop_thread_ident is not None
            and threading.get_ident() == self._loop_thread_ident
        )

    def spawn_background_task(
        self, coro: Coroutine[Any, Any, Any], *, task_name: str | None = None
    ):
        """Fire-and-forget task on the shared loop; returns the task/future handle."""
        loop = self._ensure_loop()
        if self.in_loop_thread:
            return loop.create_task(coro, name=task_name)

        async def _named():
            task = asyncio.current_task()
            if task is not None and task_name:
                task.set_name(task_name)
            return await coro

        return asyncio.run_coroutine_threadsafe(_named(), loop)

    def call_later(self, delay_s: float, callback: Callable[..., Any], *args: Any):
        """Schedule a plain callback on the shared loop after `delay_s` seconds."""
        loop = self._ensure_loop()
        loop.call_soon_threadsafe(loop.call_later, max(0.0, delay_s), callback, *args)

    def shutdown_loop(self, timeout: float = 1.0):
        """Cancel pending tasks and stop the shared loop."""
        if self.in_loop_thread:
            raise RuntimeError("shutdown_loop must not be called from the loop thread")
        with self._lock:
            loop = self._loop
            thread = self._thread
            self._stopped = True
            if not loop or not thread or loop.is_closed():
                return

        async def _shutdown():
            current = asyncio.current_task()
            tasks = [
                t for t in asyncio.all_tasks() if t is not current and not t.done()
            ]
            self._logger.debug("shutdown_loop pending_tasks=%d", len(tasks))
            for t in tasks:
                t.cancel()
            if tasks:
                await asyncio.gather(*tasks, return_exceptions=True)
            await loop.shutdown_asyncgens()

        try:
            fut = asyncio.run_coroutine_threadsafe(_shutdown(), loop)
            fut.result(timeout=timeout)
            loop.call_soon_threadsafe(loop.stop)
        except TimeoutError:
            fut.cancel()
            loop.call_soon_threadsafe(loop.stop)
            raise
        finally:
            if thread.is_alive():
                thread.join(timeout=timeout)
            if thread.is_alive():
                self._logger.warning(
                    "shutdown_loop thread did not exit within %.2fs; loop not closed",
                    timeout,
                )
            else:
                if not loop.is_closed():
                    loop.close()
                self._loop = None
                self._thread = None
                self._loop_thread_ident = None


class OnceGate:
    """Single-shot completion channel.

    Any number of producers may `fire()`; only the first value is kept and
    `wait()` releases once it arrives. Later fires are no-ops.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._fired = False
        self.error: BaseException | None = None
        self.source: str = ""

    def fire(self, error: BaseException | None = None, *, source: str = "") -> bool:
        with self._lock:
            if self._fired:
                return False
            self._fired = True
            self.error = error
            self.source = source
        self._done.set()
        return True

    @property
    def fired(self) -> bool:
        return self._done.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        return self._done.wait(timeout)


__all__ = [
    "LoopRunner",
    "OnceGate",
]
