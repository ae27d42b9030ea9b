# -- coding: utf-8 --

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable, Dict, Type

from core.registry import register_named, resolve_registered

if TYPE_CHECKING:  # pragma: no cover
    from core.runtime import CaptureService

TriggerFactory = Dict[str, Type["BaseTrigger"]]
_registry: TriggerFactory = {}


class BaseTrigger(ABC):
    """Process-wide hook that routes an external event into a CaptureService."""

    def __init__(self, service: "CaptureService"):
        self.service = service

    @abstractmethod
    def start(self):
        pass

    @abstractmethod
    def stop(self):
        pass

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()


def register_trigger(name: str) -> Callable[[Type[BaseTrigger]], Type[BaseTrigger]]:
    return register_named(_registry, name)


def create_trigger(name: str, service: "CaptureService", **kwargs) -> BaseTrigger:
    cls = resolve_registered(
        _registry,
        name,
        package=__package__ or "trigger",
        unknown_label="trigger type",
    )
    return cls(service, **kwargs)


__all__ = ["BaseTrigger", "register_trigger", "create_trigger"]
