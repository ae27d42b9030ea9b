"""CaptureRecord: one fault plus the environment snapshot taken for it."""

from __future__ import annotations

import json
import os
import traceback
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from core.contracts import FaultInfo, FrameInfo
from utils.path_time import format_capture_filename

from .environment import build_snapshot
from .identity import IdentityAllocator
from .repository import resolve_repository

DEFAULT_TIMEOUT_MS = 3000


def fault_from_exception(exc: BaseException) -> FaultInfo:
    lines = "".join(
        traceback.format_exception(type(exc), exc, exc.__traceback__)
    ).splitlines()
    return FaultInfo(
        type_name=type(exc).__qualname__,
        message=str(exc),
        stack=lines,
        frames=_flag_failing(traceback.extract_tb(exc.__traceback__)),
    )


def fault_from_message(message: str, *, skip: int = 0) -> FaultInfo:
    """Describe a fault reported as a bare string, using the caller's stack."""
    summary = traceback.extract_stack()[: -(skip + 1)]
    lines = ["Traceback (most recent call last):"]
    lines.extend("".join(traceback.format_list(summary)).splitlines())
    lines.append(f"Error: {message}")
    return FaultInfo(
        type_name="Error",
        message=str(message),
        stack=lines,
        frames=_flag_failing(summary),
    )


def _flag_failing(summary: traceback.StackSummary) -> list[FrameInfo]:
    if not summary:
        return []
    failing_file = summary[-1].filename
    return [
        FrameInfo(
            file=fs.filename,
            line=int(fs.lineno or 0),
            function=fs.name,
            code=(fs.line or "").strip(),
            failed=fs.filename == failing_file,
        )
        for fs in summary
    ]


@dataclass(frozen=True, eq=False)
class CaptureRecord:
    """Immutable capture of one fault.

    The snapshot is materialized at most once and cached in `capture`; every
    later accessor (console, disk, relay) sees the same mapping even though
    uptime, memory, and timestamps would differ on a second read.
    """

    id: int
    fault: FaultInfo
    filename: str
    directory: str
    human: bool = False
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    capture: dict[str, Any] | None = field(default=None, repr=False)

    @classmethod
    def create(
        cls,
        error: BaseException | str,
        *,
        allocator: IdentityAllocator,
        directory: str,
        human: bool = False,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        app_name: str = "",
        ts: datetime | None = None,
        materialize: bool = True,
    ) -> "CaptureRecord":
        if isinstance(error, BaseException):
            fault = fault_from_exception(error)
        else:
            fault = fault_from_message(str(error), skip=1)
        capture_id = allocator.next()
        record = cls(
            id=capture_id,
            fault=fault,
            filename=format_capture_filename(
                capture_id, pid=os.getpid(), app_name=app_name, ts=ts
            ),
            directory=directory,
            human=bool(human),
            timeout_ms=int(timeout_ms),
        )
        if materialize:
            record.snapshot()
        return record

    @property
    def message(self) -> str:
        return self.fault.message

    @property
    def stack(self) -> list[str]:
        return list(self.fault.stack)

    def snapshot(self) -> dict[str, Any]:
        capture = self.capture
        if capture is None:
            capture = build_snapshot(self)
            object.__setattr__(self, "capture", capture)
        return capture

    def git(self) -> dict[str, Any]:
        return resolve_repository()

    def to_json(self, indent: int | None = None) -> str:
        return json.dumps(self.snapshot(), indent=indent, default=str)

    def to_string(self) -> str:
        return self.to_json(indent=2).replace("{", "").replace("}", "")

    def __str__(self) -> str:
        return self.to_string()


__all__ = [
    "CaptureRecord",
    "DEFAULT_TIMEOUT_MS",
    "fault_from_exception",
    "fault_from_message",
]
