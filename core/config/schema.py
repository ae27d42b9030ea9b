"""Typed config schema blocks shared by loader/validator/runtime."""

from dataclasses import dataclass, field
from typing import Dict, List


class ConfigError(Exception):
    pass


@dataclass
class CaptureConfigBlock:
    directory: str = ""  # empty: current working directory at build time
    human: bool = False
    enabled: bool = True
    app_name: str = ""
    package_file: str = ""
    log_level: str = "info"


@dataclass
class RelayConfigBlock:
    impl: str = "noop"
    timeout_ms: int = 3000


@dataclass
class ListenerConfigBlock:
    uncaught: bool = True
    heap_signal: bool = True
    trace_heap: bool = True


@dataclass
class LoadedConfig:
    imports: List[str]
    capture: CaptureConfigBlock
    relay: RelayConfigBlock
    listener: ListenerConfigBlock
    paths: Dict[str, str] = field(default_factory=dict)


__all__ = [
    "CaptureConfigBlock",
    "ConfigError",
    "ListenerConfigBlock",
    "LoadedConfig",
    "RelayConfigBlock",
]
