from .environment import build_snapshot
from .identity import IdentityAllocator
from .record import (
    DEFAULT_TIMEOUT_MS,
    CaptureRecord,
    fault_from_exception,
    fault_from_message,
)
from .repository import resolve_repository
from .version import __version__

__all__ = [
    "CaptureRecord",
    "DEFAULT_TIMEOUT_MS",
    "IdentityAllocator",
    "__version__",
    "build_snapshot",
    "fault_from_exception",
    "fault_from_message",
    "resolve_repository",
]
