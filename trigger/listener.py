# -- coding: utf-8 --
"""FaultListener: install the configured triggers for a CaptureService."""

from __future__ import annotations

import logging
from typing import Any, Callable

from core.runtime import DISABLE_ENV, CaptureService, ServiceBuildConfig, build_service
from trigger.base import BaseTrigger, create_trigger

L = logging.getLogger("crash_capture.trigger.listener")


class FaultListener:
    def __init__(
        self,
        service: CaptureService,
        *,
        on_complete: Callable[[BaseException | None], Any] | None = None,
    ):
        self.service = service
        self._on_complete = on_complete
        self.triggers: list[BaseTrigger] = []

    def listen(self) -> "FaultListener":
        if self.triggers:
            return self
        cfg = self.service.config
        if self.service.disabled:
            L.info(
                "Crash capture disabled (config or %s); faults are not captured",
                DISABLE_ENV,
            )
            return self
        try:
            if cfg.uncaught:
                self.triggers.append(
                    create_trigger(
                        "uncaught", self.service, on_complete=self._on_complete
                    )
                )
            if cfg.heap_signal:
                self.triggers.append(create_trigger("heap_signal", self.service))
            for t in self.triggers:
                t.start()
        except Exception:
            L.exception("Fault listener start failed; rolling back")
            self.close()
            raise
        L.info(
            "Crash capture listening: dir=%s triggers=%s",
            self.service.directory,
            ",".join(type(t).__name__ for t in self.triggers) or "none",
        )
        return self

    def close(self):
        for t in reversed(self.triggers):
            t.stop()
        self.triggers = []

    def __enter__(self):
        return self.listen()

    def __exit__(self, exc_type, exc, tb):
        self.close()


def listen(
    config: ServiceBuildConfig | None = None,
    *,
    on_complete: Callable[[BaseException | None], Any] | None = None,
    **build_kwargs,
) -> FaultListener:
    """One-call setup: build a service from `config` and start listening."""
    service = build_service(config, **build_kwargs)
    return FaultListener(service, on_complete=on_complete).listen()


__all__ = ["FaultListener", "listen"]
