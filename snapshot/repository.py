"""Discover the git checkout and revision of the working directory.

Approach:

- walk upward from the start directory looking for a `.git` directory
- read `.git/HEAD` to find the checked out ref
- read the ref file (or `packed-refs`) for the revision

Every read is best-effort; a missing or unreadable piece only drops its key.
"""

from __future__ import annotations

import configparser
import logging
import os
import stat
from typing import Any

L = logging.getLogger("crash_capture.repository")

VCS_DIRNAME = ".git"
REF_PREFIX = "ref: "


def resolve_repository(start_dir: str | None = None) -> dict[str, Any]:
    current = os.path.abspath(start_dir or os.getcwd())
    while True:
        dot = os.path.join(current, VCS_DIRNAME)
        if _is_directory(dot):
            return read_metadata(dot)
        parent = os.path.dirname(current)
        if parent == current:
            return {}
        current = parent


def read_metadata(dot: str) -> dict[str, Any]:
    data: dict[str, Any] = read_config(os.path.join(dot, "config"))
    checkout: str | None = None
    sha1: str | None = None

    head = _read_text(os.path.join(dot, "HEAD"))
    if head is not None:
        if head.startswith(REF_PREFIX):
            checkout = head[len(REF_PREFIX) :].strip() or None
        else:
            # Detached HEAD holds the revision itself.
            sha1 = head.strip() or None

    if checkout:
        sha1 = _read_ref(dot, checkout)
        data["checkout"] = checkout
    if sha1:
        data["sha1"] = sha1
    return data


def read_config(path: str) -> dict[str, Any]:
    text = _read_text(path)
    if text is None:
        return {}
    parser = configparser.ConfigParser(
        strict=False, interpolation=None, allow_no_value=True
    )
    parser.optionxform = str  # type: ignore[assignment]
    try:
        parser.read_string(text, source=path)
    except configparser.Error as e:
        L.debug("Ignoring unparsable git config %s: %s", path, e)
        return {}
    return {section: dict(parser.items(section)) for section in parser.sections()}


def _read_ref(dot: str, ref: str) -> str | None:
    loose = _read_text(os.path.join(dot, *ref.split("/")))
    if loose is not None:
        return loose.strip() or None
    packed = _read_text(os.path.join(dot, "packed-refs"))
    if packed is None:
        return None
    for line in packed.splitlines():
        if not line or line[0] in "#^":
            continue
        sha, _, name = line.partition(" ")
        if name.strip() == ref:
            return sha.strip() or None
    return None


def _is_directory(path: str) -> bool:
    try:
        return stat.S_ISDIR(os.lstat(path).st_mode)
    except OSError:
        return False


def _read_text(path: str) -> str | None:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    except (OSError, UnicodeDecodeError) as e:
        L.debug("Git metadata unreadable %s: %s", path, e)
        return None


__all__ = ["read_config", "read_metadata", "resolve_repository"]
