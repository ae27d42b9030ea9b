from __future__ import annotations

import os
from datetime import datetime

EXCEPTIONS_DIRNAME = "exceptions"

# Fixed English names so filenames do not depend on the process locale.
_WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTHS = (
    "Jan",
    "Feb",
    "Mar",
    "Apr",
    "May",
    "Jun",
    "Jul",
    "Aug",
    "Sep",
    "Oct",
    "Nov",
    "Dec",
)


def coerce_local_datetime(value: datetime | None) -> datetime:
    ref = value or datetime.now()
    if ref.tzinfo is not None:
        ref = ref.astimezone()
    return ref


def format_date_key(ts: datetime | None = None) -> str:
    """Render a date as ``Www-Mmm-dd-yyyy`` (e.g. ``Mon-Oct-19-2026``)."""
    ref = coerce_local_datetime(ts)
    return "-".join(
        [
            _WEEKDAYS[ref.weekday()],
            _MONTHS[ref.month - 1],
            f"{ref.day:02d}",
            f"{ref.year:04d}",
        ]
    )


def format_capture_filename(
    capture_id: int,
    *,
    pid: int | None = None,
    app_name: str = "",
    ts: datetime | None = None,
) -> str:
    parts = [format_date_key(ts)]
    if app_name:
        parts.append(app_name)
    parts.append(str(os.getpid() if pid is None else int(pid)))
    parts.append(str(int(capture_id)))
    return "-".join(parts)


def exceptions_dir(base_dir: str) -> str:
    return os.path.join(base_dir, EXCEPTIONS_DIRNAME)


def build_capture_path(base_dir: str, filename: str, ext: str) -> str:
    return os.path.join(exceptions_dir(base_dir), f"{filename}{ext}")


__all__ = [
    "EXCEPTIONS_DIRNAME",
    "build_capture_path",
    "coerce_local_datetime",
    "exceptions_dir",
    "format_capture_filename",
    "format_date_key",
]
