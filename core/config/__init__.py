"""Config package facade."""

from .loader import load_config
from .schema import (
    CaptureConfigBlock,
    ConfigError,
    ListenerConfigBlock,
    LoadedConfig,
    RelayConfigBlock,
)
from .validate import validate_config

__all__ = [
    "CaptureConfigBlock",
    "ConfigError",
    "ListenerConfigBlock",
    "LoadedConfig",
    "RelayConfigBlock",
    "load_config",
    "validate_config",
]
