"""Point-in-time description of the interpreter, process, and host."""

from __future__ import annotations

import faulthandler
import logging
import os
import platform
import socket
import sys
import time
import tracemalloc
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Callable, Protocol

import psutil
import yaml

from core.contracts import FaultInfo
from utils.units import format_bytes

from .version import __version__

L = logging.getLogger("crash_capture.environment")

_MISSING = object()
_PROBE_ERRORS = (
    psutil.Error,
    OSError,
    AttributeError,
    NotImplementedError,
    ValueError,
    IndexError,
)


class DescribedFault(Protocol):
    fault: FaultInfo
    human: bool

    @property
    def message(self) -> str: ...

    @property
    def stack(self) -> list[str]: ...

    def git(self) -> dict[str, Any]: ...


def build_snapshot(record: DescribedFault) -> dict[str, Any]:
    human = bool(record.human)
    now = datetime.now(timezone.utc)
    proc = psutil.Process()
    return {
        "runtime": runtime_info(),
        "environment": environment_info(),
        "repository": record.git(),
        "system": system_info(human),
        "process": process_info(proc, human),
        "exception": exception_info(record, now),
    }


def runtime_info() -> dict[str, Any]:
    return {
        "version": __version__.split(".")[0],
        "versions": _compact(
            {
                "python": platform.python_version(),
                "implementation": platform.python_implementation(),
                "compiler": platform.python_compiler(),
                "build": " ".join(platform.python_build()),
                "openssl": _probe(_openssl_version),
                "psutil": psutil.__version__,
                "yaml": yaml.__version__,
            }
        ),
    }


def environment_info() -> dict[str, Any]:
    env = os.environ
    return _compact(
        {
            "args": list(sys.argv),
            "executable": sys.executable,
            "cwd": _probe(os.getcwd),
            "env": {key: env[key] for key in sorted(env)},
            "gid": _probe(lambda: os.getgid()),
            "uid": _probe(lambda: os.getuid()),
        }
    )


def system_info(human: bool) -> dict[str, Any]:
    vm = _probe(psutil.virtual_memory)
    return _compact(
        {
            "platform": sys.platform,
            "arch": platform.machine() or _MISSING,
            "hostname": _probe(socket.gethostname),
            "freemem": _MISSING if vm is _MISSING else format_bytes(vm.available, human),
            "totalmem": _MISSING if vm is _MISSING else format_bytes(vm.total, human),
            "cpu": cpu_info(),
        }
    )


def cpu_info() -> dict[str, Any]:
    load = _probe(psutil.getloadavg)
    return _compact(
        {
            "load": _MISSING
            if load is _MISSING
            else {"1": load[0], "5": load[1], "15": load[2]},
            "cores": os.cpu_count() or _MISSING,
            "speed": _probe(_average_cpu_speed),
            "model": _probe(_cpu_model),
        }
    )


def process_info(proc: psutil.Process, human: bool) -> dict[str, Any]:
    return _compact(
        {
            "uptime": _probe(lambda: round(time.time() - proc.create_time(), 3)),
            "title": _probe(proc.name),
            "active": _compact(
                {
                    "requests": _probe(lambda: len(_connections(proc))),
                    "handles": _probe(lambda: _handle_count(proc)),
                }
            ),
            "memory": memory_info(proc, human),
            "pid": os.getpid(),
            "features": feature_flags(),
            "modulesloaded": sorted(sys.modules),
        }
    )


def memory_info(proc: psutil.Process, human: bool) -> dict[str, Any]:
    """rss from the OS; heap from tracemalloc (only while it is tracing)."""
    out: dict[str, Any] = {}
    mem = _probe(proc.memory_info)
    if mem is not _MISSING:
        out["rss"] = format_bytes(mem.rss, human)
    if tracemalloc.is_tracing():
        used, allocated = tracemalloc.get_traced_memory()
        out["heap"] = {
            "used": format_bytes(used, human),
            "allocated": format_bytes(allocated, human),
        }
        if mem is not _MISSING:
            out["native"] = format_bytes(mem.rss - allocated, human)
    return out


def feature_flags() -> dict[str, Any]:
    flags: dict[str, Any] = {
        name: getattr(sys.flags, name)
        for name in dir(sys.flags)
        if not name.startswith(("_", "n_")) and name not in ("count", "index")
    }
    flags["tracemalloc"] = tracemalloc.is_tracing()
    flags["faulthandler"] = faulthandler.is_enabled()
    gil_check = getattr(sys, "_is_gil_enabled", None)
    if gil_check is not None:
        flags["gil"] = bool(gil_check())
    return flags


def exception_info(record: DescribedFault, now: datetime) -> dict[str, Any]:
    return {
        "occurred": now.isoformat(),
        "ms": int(now.timestamp() * 1000),
        "type": record.fault.type_name,
        "message": record.message,
        "stacktrace": [line.strip() for line in record.stack if line.strip()],
        "line": [asdict(frame) for frame in record.fault.frames if frame.failed],
    }


def _openssl_version() -> str:
    import ssl

    return ssl.OPENSSL_VERSION


def _average_cpu_speed():
    freqs = psutil.cpu_freq(percpu=True)
    speeds = [f.current for f in freqs or [] if f.current]
    if not speeds:
        return _MISSING
    return round(sum(speeds) / len(speeds), 2)


def _cpu_model():
    if sys.platform.startswith("linux"):
        with open("/proc/cpuinfo", "r", encoding="utf-8", errors="replace") as f:
            for line in f:
                key, _, value = line.partition(":")
                if key.strip() in ("model name", "Model", "Processor"):
                    return value.strip()
    return platform.processor() or _MISSING


def _connections(proc: psutil.Process):
    getter = getattr(proc, "net_connections", None) or proc.connections
    return getter(kind="inet")


def _handle_count(proc: psutil.Process) -> int:
    if hasattr(proc, "num_handles"):
        return proc.num_handles()
    return proc.num_fds()


def _probe(fn: Callable[[], Any]) -> Any:
    try:
        return fn()
    except _PROBE_ERRORS as e:
        L.debug("environment probe %s unavailable: %s", getattr(fn, "__name__", fn), e)
        return _MISSING


def _compact(values: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in values.items() if v is not _MISSING}


__all__ = [
    "build_snapshot",
    "cpu_info",
    "environment_info",
    "exception_info",
    "feature_flags",
    "memory_info",
    "process_info",
    "runtime_info",
    "system_info",
]
