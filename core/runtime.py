"""Core runtime: CaptureService ownership and assembly."""

from __future__ import annotations

import logging
import os
import tracemalloc
from dataclasses import dataclass
from typing import IO, Any, Callable, Mapping

from core.lifecycle import LoopRunner
from core.termination import Completion, TerminationController, terminate_process
from output.heap import HeapWriter, start_heap_tracing
from output.relay import RemoteRelay, Reporter, create_reporter
from output.sink import PersistenceSink
from snapshot.identity import IdentityAllocator
from snapshot.record import DEFAULT_TIMEOUT_MS, CaptureRecord
from utils.path_time import exceptions_dir, format_capture_filename

L = logging.getLogger("crash_capture.runtime")

DISABLE_ENV = "CRASH_CAPTURE_DISABLED"
_TRUTHY = {"1", "true", "yes", "on"}


def is_capture_disabled(environ: Mapping[str, str] | None = None) -> bool:
    env = os.environ if environ is None else environ
    return str(env.get(DISABLE_ENV, "")).strip().lower() in _TRUTHY


@dataclass
class ServiceBuildConfig:
    directory: str = ""
    human: bool = False
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    app_name: str = ""
    enabled: bool = True
    reporter: str = "noop"
    uncaught: bool = True
    heap_signal: bool = True
    trace_heap: bool = True


def build_service_config_from_loaded_config(cfg) -> ServiceBuildConfig:
    return ServiceBuildConfig(
        directory=cfg.capture.directory,
        human=bool(cfg.capture.human),
        timeout_ms=int(cfg.relay.timeout_ms),
        app_name=cfg.capture.app_name,
        enabled=bool(cfg.capture.enabled),
        reporter=cfg.relay.impl,
        uncaught=bool(cfg.listener.uncaught),
        heap_signal=bool(cfg.listener.heap_signal),
        trace_heap=bool(cfg.listener.trace_heap),
    )


class CaptureService:
    """Process-wide owner of the id allocator, outputs, relay, and controller."""

    def __init__(
        self,
        config: ServiceBuildConfig,
        *,
        allocator: IdentityAllocator,
        sink: PersistenceSink,
        relay: RemoteRelay,
        controller: TerminationController,
        loop_runner: LoopRunner,
        owns_tracing: bool = False,
    ):
        self.config = config
        self.allocator = allocator
        self.sink = sink
        self.relay = relay
        self.controller = controller
        self.loop_runner = loop_runner
        self._owns_tracing = owns_tracing

    @property
    def directory(self) -> str:
        return self.sink.directory

    @property
    def disabled(self) -> bool:
        return not self.config.enabled or is_capture_disabled()

    def capture(self, error: BaseException | str) -> CaptureRecord:
        return CaptureRecord.create(
            error,
            allocator=self.allocator,
            directory=self.directory,
            human=self.config.human,
            timeout_ms=self.config.timeout_ms,
            app_name=self.config.app_name,
        )

    def save(
        self, record: CaptureRecord, on_complete: Completion | None = None
    ) -> BaseException | None:
        return self.controller.run(record, on_complete)

    def handle_fault(
        self, error: BaseException | str, on_complete: Completion | None = None
    ) -> CaptureRecord:
        record = self.capture(error)
        L.error("Captured fault %s: %s", record.filename, record.message)
        self.save(record, on_complete)
        return record

    def dump_heap(self) -> str:
        """Heap-only dump under a fresh id; no record and no termination."""
        name = format_capture_filename(
            self.allocator.next(), app_name=self.config.app_name
        )
        path = self.sink.dump_heap_to(name)
        L.info("Heap dump requested: %s", path)
        return path

    def close(self):
        self.loop_runner.shutdown_loop()
        if self._owns_tracing and tracemalloc.is_tracing():
            tracemalloc.stop()
        self._owns_tracing = False


def build_service(
    config: ServiceBuildConfig | None = None,
    *,
    reporter: Reporter | None = None,
    heap_writer: HeapWriter | None = None,
    abort: Callable[[], Any] | None = None,
    stream: IO[str] | None = None,
    loop_runner: LoopRunner | None = None,
) -> CaptureService:
    cfg = config or ServiceBuildConfig()
    directory = os.path.abspath(cfg.directory or os.getcwd())
    runner = loop_runner or LoopRunner(logger=L)
    sink = PersistenceSink(directory, heap_writer=heap_writer, stream=stream)
    relay = RemoteRelay(reporter or create_reporter(cfg.reporter), runner)
    controller = TerminationController(
        sink, relay, abort=abort or terminate_process
    )
    # Heap dumps need tracemalloc running before the fault, not after it.
    owns_tracing = False
    if cfg.trace_heap and cfg.enabled and not is_capture_disabled():
        owns_tracing = start_heap_tracing()
    return CaptureService(
        cfg,
        allocator=IdentityAllocator(exceptions_dir(directory)),
        sink=sink,
        relay=relay,
        controller=controller,
        loop_runner=runner,
        owns_tracing=owns_tracing,
    )


__all__ = [
    "CaptureService",
    "DISABLE_ENV",
    "ServiceBuildConfig",
    "build_service",
    "build_service_config_from_loaded_config",
    "is_capture_disabled",
]
