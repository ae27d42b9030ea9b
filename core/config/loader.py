"""YAML loader and section builders for capture configuration."""

from __future__ import annotations

import glob
import importlib
import os
from typing import Any

import yaml

from .schema import (
    CaptureConfigBlock,
    ConfigError,
    ListenerConfigBlock,
    LoadedConfig,
    RelayConfigBlock,
)

_TOP_LEVEL_KEYS = {"imports", "capture", "relay", "listener"}


def load_config(config_dir: str = "config") -> LoadedConfig:
    main_path = _find_main_config(config_dir)
    main_data = _read_yaml(main_path)
    _validate_allowed_keys(main_data, _TOP_LEVEL_KEYS, "<root>", main_path)
    imports = main_data.get("imports") or []
    _import_modules(imports, main_path)

    capture = _build_section(
        CaptureConfigBlock, main_data.get("capture"), main_path, section="capture"
    )
    relay = _build_section(
        RelayConfigBlock, main_data.get("relay"), main_path, section="relay"
    )
    listener = _build_section(
        ListenerConfigBlock, main_data.get("listener"), main_path, section="listener"
    )

    paths = {"main": main_path}
    if capture.package_file:
        package_path = capture.package_file
        if not os.path.isabs(package_path):
            package_path = os.path.join(config_dir, package_path)
        if not capture.app_name:
            capture.app_name = _read_package_name(package_path)
        paths["package"] = package_path

    return LoadedConfig(
        imports=imports,
        capture=capture,
        relay=relay,
        listener=listener,
        paths=paths,
    )


def _find_main_config(config_dir: str) -> str:
    patterns = [
        os.path.join(config_dir, "main_*.yaml"),
        os.path.join(config_dir, "main_*.yml"),
    ]
    candidates: list[str] = []
    for pattern in patterns:
        candidates.extend(glob.glob(pattern))
    if len(candidates) == 0:
        raise ConfigError(f"No main_*.yaml found under {config_dir}")
    if len(candidates) > 1:
        raise ConfigError(
            f"Expected exactly one main_*.yaml, found: {', '.join(sorted(candidates))}"
        )
    return candidates[0]


def _read_yaml(path: str) -> dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"YAML root must be a mapping: {path}")
    return data


def _read_package_name(path: str) -> str:
    # JSON package descriptors are valid YAML, so one reader covers both.
    data = _read_yaml(path)
    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ConfigError(f"Package descriptor has no 'name': {path}")
    return name.strip()


def _build_section(cls, data: Any, main_path: str, section: str):
    if data is None:
        return cls()
    if not isinstance(data, dict):
        raise ConfigError(f"'{section}' must be a mapping in {main_path}")
    return _build_dataclass(cls, data, main_path, section=section)


def _build_dataclass(cls, data: dict[str, Any], main_path: str, section: str):
    obj = cls()
    fields = cls.__dataclass_fields__
    for k, v in (data or {}).items():
        if k in fields:
            setattr(obj, k, v)
        else:
            raise ConfigError(f"Unknown field {section}.{k} in {main_path}")
    return obj


def _validate_allowed_keys(
    data: dict[str, Any], allowed_keys: set[str], section: str, main_path: str
) -> None:
    for key in data.keys():
        if key not in allowed_keys:
            raise ConfigError(f"Unknown field {section}.{key} in {main_path}")


def _import_modules(imports: Any, main_path: str):
    if imports is None:
        return
    if not isinstance(imports, list):
        raise ConfigError(f"'imports' must be a list in {main_path}")
    for path in imports:
        if not isinstance(path, str) or not path:
            raise ConfigError(f"Invalid import path {path!r} in {main_path}")
        try:
            importlib.import_module(path)
        except ImportError as e:
            raise ConfigError(f"Cannot import {path!r} from {main_path}: {e}") from e


__all__ = ["load_config"]
