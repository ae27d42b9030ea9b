# -- coding: utf-8 --
"""RemoteRelay: scheduling boundary between a capture and its async reporter."""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from typing import Any, Callable, Dict

from core.lifecycle import LoopRunner
from core.registry import register_named, resolve_registered

L = logging.getLogger("crash_capture.output.relay")

Reporter = Callable[[Any], Awaitable[Any]]
Completion = Callable[[BaseException | None], Any]

_registry: Dict[str, Callable[..., Reporter]] = {}


class RemoteRelay:
    """Hand a record to the reporter and signal completion exactly once.

    The reporter runs on the shared loop, so `on_complete` is never invoked
    from inside `send()`. A reporter that never returns never completes; the
    caller owns the deadline.
    """

    def __init__(self, reporter: Reporter, loop_runner: LoopRunner):
        self._reporter = reporter
        self._loop_runner = loop_runner

    @property
    def loop_runner(self) -> LoopRunner:
        return self._loop_runner

    def send(self, record, on_complete: Completion):
        async def _relay():
            err: BaseException | None = None
            try:
                await self._reporter(record)
            except Exception as e:
                L.warning("Remote relay for %s failed: %s", record.filename, e)
                err = e
            on_complete(err)

        return self._loop_runner.spawn_background_task(
            _relay(), task_name=f"relay.{record.filename}"
        )


def register_reporter(name: str):
    return register_named(_registry, name)


def create_reporter(name: str, **kwargs) -> Reporter:
    factory = resolve_registered(
        _registry,
        name,
        package=__package__ or "output.relay",
        unknown_label="relay reporter",
    )
    return factory(**kwargs)


__all__ = [
    "Completion",
    "RemoteRelay",
    "Reporter",
    "create_reporter",
    "register_reporter",
]
