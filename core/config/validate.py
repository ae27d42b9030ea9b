"""Capture config value validation."""

from __future__ import annotations

import os
from typing import Any

from .schema import ConfigError, LoadedConfig

_LOG_LEVELS = {"debug", "info", "warning", "warn", "error", "critical"}


def validate_config(cfg: LoadedConfig) -> None:
    # capture
    _require_str("capture.directory", cfg.capture.directory, allow_empty=True)
    _require_bool("capture.human", cfg.capture.human)
    _require_bool("capture.enabled", cfg.capture.enabled)
    app_name = _require_str("capture.app_name", cfg.capture.app_name, allow_empty=True)
    if os.sep in app_name or (os.altsep and os.altsep in app_name):
        raise ConfigError("capture.app_name must not contain path separators")
    level = _require_str("capture.log_level", cfg.capture.log_level)
    if level.strip().lower() not in _LOG_LEVELS:
        raise ConfigError(
            f"capture.log_level must be one of {', '.join(sorted(_LOG_LEVELS))}"
        )

    # relay
    _require_str("relay.impl", cfg.relay.impl)
    _require_int("relay.timeout_ms", cfg.relay.timeout_ms, min_v=1)

    # listener
    _require_bool("listener.uncaught", cfg.listener.uncaught)
    _require_bool("listener.heap_signal", cfg.listener.heap_signal)
    _require_bool("listener.trace_heap", cfg.listener.trace_heap)


def _require_int(
    name: str, value: Any, *, min_v: int | None = None, max_v: int | None = None
) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be an integer")
    try:
        iv = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} must be an integer") from e
    if min_v is not None and iv < min_v:
        op = ">=" if min_v != 1 else ">"
        threshold = min_v if min_v != 1 else 0
        raise ConfigError(f"{name} must be {op} {threshold}")
    if max_v is not None and iv > max_v:
        raise ConfigError(f"{name} must be <= {max_v}")
    return iv


def _require_bool(name: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"{name} must be true or false")
    return value


def _require_str(name: str, value: Any, *, allow_empty: bool = False) -> str:
    if not isinstance(value, str):
        raise ConfigError(f"{name} must be a string")
    if not allow_empty and not value.strip():
        raise ConfigError(f"{name} must not be empty")
    return value


__all__ = ["validate_config"]
