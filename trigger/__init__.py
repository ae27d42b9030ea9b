from .base import BaseTrigger, create_trigger, register_trigger
from .heap_signal import HeapSignalTrigger
from .listener import FaultListener, listen
from .uncaught import UncaughtFaultTrigger

__all__ = [
    "BaseTrigger",
    "FaultListener",
    "HeapSignalTrigger",
    "UncaughtFaultTrigger",
    "create_trigger",
    "listen",
    "register_trigger",
]
