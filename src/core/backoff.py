"""Reconnect backoff policy."""

from __future__ import annotations

# 2**32 * base already exceeds any sane cap.
_MAX_EXPONENT = 32


def reconnect_delay(attempts: int, base_seconds: float, max_delay_seconds: float) -> float:
    """Return ``min(2**attempts * base_seconds, max_delay_seconds)``."""

    if attempts < 0:
        raise ValueError(f"attempts must be >= 0, got {attempts}")
    exponent = min(attempts, _MAX_EXPONENT)
    return float(min((2 ** exponent) * base_seconds, max_delay_seconds))


def format_seconds(seconds: float) -> str:
    value = int(seconds) if float(seconds).is_integer() else seconds
    return f"{value} second{'' if value == 1 else 's'}"
