# -- coding: utf-8 --

from __future__ import annotations

import logging
import sys
import threading
from typing import Any, Callable

from trigger.base import BaseTrigger, register_trigger

L = logging.getLogger("crash_capture.trigger.uncaught")


@register_trigger("uncaught")
class UncaughtFaultTrigger(BaseTrigger):
    """Capture the first uncaught exception of the process, from any thread.

    Only one fault is ever captured: a fault raised while capturing (or any
    later one) goes straight to the previously installed hook.
    """

    def __init__(
        self,
        service,
        *,
        on_complete: Callable[[BaseException | None], Any] | None = None,
    ):
        super().__init__(service)
        self._on_complete = on_complete
        self._fired = False
        self._lock = threading.Lock()
        self._prev_excepthook: Callable[..., Any] | None = None
        self._prev_thread_hook: Callable[..., Any] | None = None

    @property
    def fired(self) -> bool:
        return self._fired

    def start(self):
        if self._prev_excepthook is not None:
            return
        self._prev_excepthook = sys.excepthook
        self._prev_thread_hook = threading.excepthook
        sys.excepthook = self._excepthook
        threading.excepthook = self._thread_excepthook
        L.debug("Uncaught fault hooks installed")

    def stop(self):
        if self._prev_excepthook is None:
            return
        if sys.excepthook == self._excepthook:
            sys.excepthook = self._prev_excepthook
        if threading.excepthook == self._thread_excepthook:
            threading.excepthook = self._prev_thread_hook
        self._prev_excepthook = None
        self._prev_thread_hook = None

    def _claim(self, exc_type) -> bool:
        if exc_type is None or issubclass(exc_type, (KeyboardInterrupt, SystemExit)):
            return False
        with self._lock:
            if self._fired:
                return False
            self._fired = True
            return True

    def _excepthook(self, exc_type, exc, tb):
        prev = self._prev_excepthook or sys.__excepthook__
        if not self._claim(exc_type):
            return prev(exc_type, exc, tb)
        if exc is None:
            exc = exc_type()
        if exc.__traceback__ is None and tb is not None:
            exc = exc.with_traceback(tb)
        if not self._capture(exc):
            prev(exc_type, exc, tb)

    def _thread_excepthook(self, args):
        prev = self._prev_thread_hook or threading.__excepthook__
        if not self._claim(args.exc_type):
            return prev(args)
        exc = args.exc_value
        if exc is None:
            exc = args.exc_type()
        if exc.__traceback__ is None and args.exc_traceback is not None:
            exc = exc.with_traceback(args.exc_traceback)
        if not self._capture(exc):
            prev(args)

    def _capture(self, exc: BaseException) -> bool:
        try:
            self.service.handle_fault(exc, on_complete=self._on_complete)
        except Exception:
            L.exception("Crash capture failed; handing fault to the default handler")
            return False
        return True


__all__ = ["UncaughtFaultTrigger"]
