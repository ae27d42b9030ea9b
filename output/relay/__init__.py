from .base import (
    RemoteRelay,
    Reporter,
    create_reporter,
    register_reporter,
)

__all__ = [
    "RemoteRelay",
    "Reporter",
    "create_reporter",
    "register_reporter",
]
