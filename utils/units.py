from __future__ import annotations

import math

_UNITS = (
    (1 << 40, "tb"),
    (1 << 30, "gb"),
    (1 << 20, "mb"),
    (1 << 10, "kb"),
)


def format_bytes(value: int | float, human: bool) -> int | float | str:
    """Render a byte count, optionally as the largest unit >= 1.

    Magnitude is compared on the absolute value so negative deltas keep their
    sign: ``format_bytes(-2097152, True) == "-2mb"``.
    """
    if not human:
        return value
    magnitude = abs(value)
    for size, suffix in _UNITS:
        if magnitude >= size:
            return f"{_round2(value / size)}{suffix}"
    return f"{_round2(value)}b"


def _round2(value: float) -> str:
    # Half-up rounding to 2 decimals, trailing zeros dropped.
    rounded = math.floor(value * 100 + 0.5) / 100
    text = f"{rounded:.2f}".rstrip("0").rstrip(".")
    return "0" if text in ("", "-0") else text


__all__ = ["format_bytes"]
