# -- coding: utf-8 --

from __future__ import annotations

import logging
import signal
import threading

from trigger.base import BaseTrigger, register_trigger

L = logging.getLogger("crash_capture.trigger.heap_signal")

SIGNAL_NAME = "SIGUSR1"


@register_trigger("heap_signal")
class HeapSignalTrigger(BaseTrigger):
    """`kill -USR1 <pid>` writes a heap snapshot of the live process."""

    def __init__(self, service, *, signal_name: str = SIGNAL_NAME):
        super().__init__(service)
        self._signal_name = signal_name
        self._signum: int | None = None
        self._prev_handler = None

    @property
    def installed(self) -> bool:
        return self._signum is not None

    def start(self):
        if self._signum is not None:
            return
        signum = getattr(signal, self._signal_name, None)
        if signum is None:
            L.info("%s not available on this platform; heap signal disabled", self._signal_name)
            return
        if threading.current_thread() is not threading.main_thread():
            L.warning("Heap signal handler can only be installed from the main thread")
            return
        self._prev_handler = signal.signal(signum, self._handle)
        self._signum = signum
        L.debug("Heap signal handler installed on %s", self._signal_name)

    def stop(self):
        if self._signum is None:
            return
        if threading.current_thread() is threading.main_thread():
            prev = self._prev_handler
            signal.signal(
                self._signum, prev if prev is not None else signal.SIG_DFL
            )
        self._signum = None
        self._prev_handler = None

    def _handle(self, signum, _frame):
        # The interrupted main thread may hold the id allocator lock.
        threading.Thread(
            target=self._dump, args=(signum,), name="crash-capture-heap", daemon=True
        ).start()

    def _dump(self, signum: int):
        try:
            self.service.dump_heap()
        except Exception:
            L.exception("Heap dump on signal %d failed", signum)


__all__ = ["HeapSignalTrigger", "SIGNAL_NAME"]
