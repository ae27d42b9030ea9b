"""Data contracts shared by the snapshot, output, and trigger layers."""

from dataclasses import dataclass, field
from enum import Enum


class CaptureInitError(Exception):
    """The capture output directory could not be prepared."""


class RelayTimeoutError(TimeoutError):
    def __init__(self, timeout_ms: int):
        super().__init__(f"Remote relay did not complete within {int(timeout_ms)}ms")
        self.timeout_ms = int(timeout_ms)


class CaptureState(str, Enum):
    CAPTURING = "capturing"
    PERSISTING = "persisting"
    RELAYING = "relaying"
    TERMINATED = "terminated"


@dataclass(slots=True)
class FrameInfo:
    file: str = ""
    line: int = 0
    function: str = ""
    code: str = ""
    failed: bool = False  # frame belongs to the module that raised


@dataclass(slots=True)
class FaultInfo:
    type_name: str = ""
    message: str = ""
    stack: list[str] = field(default_factory=list)
    frames: list[FrameInfo] = field(default_factory=list)


__all__ = [
    "CaptureInitError",
    "CaptureState",
    "FaultInfo",
    "FrameInfo",
    "RelayTimeoutError",
]
