"""TerminationController: persist a capture, relay it under a deadline, then abort."""

from __future__ import annotations

import functools
import logging
import os
import signal
import sys
from typing import Any, Callable, NoReturn

from core.contracts import CaptureState, RelayTimeoutError
from core.lifecycle import OnceGate
from output.relay import RemoteRelay
from output.sink import PersistenceSink
from snapshot.record import CaptureRecord

L = logging.getLogger("crash_capture.termination")

# Extra wait beyond the relay deadline before the caller stops trusting the loop timer.
DEFAULT_GRACE_S = 1.0

Completion = Callable[[BaseException | None], Any]


def terminate_process() -> NoReturn:
    """Abort so the OS can keep a core file; never returns.

    When `os.abort` is unavailable SIGABRT is sent to ourselves until it lands.
    """
    logging.shutdown()
    try:
        sys.stderr.flush()
    except (OSError, ValueError):
        pass
    abort = getattr(os, "abort", None)
    if abort is not None:
        abort()
    while True:
        os.kill(os.getpid(), signal.SIGABRT)


class TerminationController:
    def __init__(
        self,
        sink: PersistenceSink,
        relay: RemoteRelay,
        *,
        abort: Callable[[], Any] = terminate_process,
        grace_s: float = DEFAULT_GRACE_S,
    ):
        self._sink = sink
        self._relay = relay
        self._abort = abort
        self._grace_s = float(grace_s)
        self.state: CaptureState | None = None
        self.history: list[tuple[int, CaptureState]] = []

    def run(
        self, record: CaptureRecord, on_complete: Completion | None = None
    ) -> BaseException | None:
        """Drive one capture through CAPTURING -> PERSISTING -> RELAYING -> TERMINATED.

        Without `on_complete` the process is aborted at the end. With it, the
        callback gets the relay error (or None) and termination is its job.
        TERMINATED is reached even when an earlier step raises.
        """
        err: BaseException | None = None
        try:
            self._enter(record, CaptureState.CAPTURING)
            record.snapshot()

            self._enter(record, CaptureState.PERSISTING)
            self._persist(record)

            self._enter(record, CaptureState.RELAYING)
            err = self._relay_with_deadline(record)
        except Exception as e:
            L.exception("Capture %s failed before the relay finished", record.filename)
            err = e
        finally:
            self._enter(record, CaptureState.TERMINATED)
            if on_complete is not None:
                on_complete(err)
            else:
                self._kill(record, err)
        return err

    def _enter(self, record: CaptureRecord, state: CaptureState):
        self.state = state
        self.history.append((record.id, state))
        L.debug("Capture %s -> %s", record.filename, state.value)

    def _persist(self, record: CaptureRecord):
        try:
            self._sink.to_console(record)
        except Exception as e:
            L.warning("Console output skipped for %s: %s", record.filename, e)
        self._sink.to_disk(record)
        try:
            self._sink.dump_heap(record)
        except Exception:
            L.exception("Heap dump for %s failed", record.filename)

    def _relay_with_deadline(self, record: CaptureRecord) -> BaseException | None:
        timeout_s = max(0, int(record.timeout_ms)) / 1000.0
        gate = OnceGate()
        timeout_err = RelayTimeoutError(record.timeout_ms)
        try:
            self._relay.loop_runner.call_later(
                timeout_s, functools.partial(gate.fire, timeout_err, source="timer")
            )
        except RuntimeError as e:
            # Loop unusable; the bounded wait below still enforces the deadline.
            L.warning("Relay timer for %s not scheduled: %s", record.filename, e)
        try:
            self._relay.send(record, functools.partial(gate.fire, source="relay"))
        except Exception as e:
            L.exception("Remote relay for %s could not be scheduled", record.filename)
            gate.fire(e, source="send")
        if not gate.wait(timeout_s + self._grace_s):
            gate.fire(timeout_err, source="watchdog")
        if gate.error is not None:
            L.warning(
                "Relay for %s finished via %s: %s",
                record.filename,
                gate.source,
                gate.error,
            )
        else:
            L.info("Relay for %s completed", record.filename)
        return gate.error

    def _kill(self, record: CaptureRecord, err: BaseException | None):
        L.critical(
            "Aborting process after capture %s (relay: %s)",
            record.filename,
            err or "ok",
        )
        self._abort()


__all__ = ["TerminationController", "terminate_process"]
