from __future__ import annotations

import importlib
from collections.abc import MutableMapping
from typing import TypeVar

T = TypeVar("T")


def register_named(registry: MutableMapping[str, T], name: str):
    """Decorator to register a factory under a string key."""
    key = _normalize_name(name)

    def decorator(obj: T) -> T:
        registry[key] = obj
        return obj

    return decorator


def resolve_registered(
    registry: MutableMapping[str, T],
    name: str,
    *,
    package: str,
    unknown_label: str,
) -> T:
    """Resolve a registry entry, lazily importing `<package>.<name>` if needed."""
    key = _normalize_name(name)
    import_err: Exception | None = None
    if key not in registry:
        try:
            importlib.import_module(f"{package}.{key}")
        except ImportError as e:
            import_err = e
    if key not in registry:
        hint = f" (import failed: {import_err})" if import_err else ""
        raise ValueError(
            f"Unknown {unknown_label} '{name}'. "
            f"Available: {', '.join(sorted(registry)) or 'none'}{hint}"
        )
    return registry[key]


def _normalize_name(name: str) -> str:
    return str(name or "").strip().lower()


__all__ = ["register_named", "resolve_registered"]
