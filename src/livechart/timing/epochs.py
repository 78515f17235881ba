"""Epoch normalization.

Feeds stamp rows in seconds, milliseconds, microseconds or nanoseconds, and
not always in the same field. Everything downstream keys on integer
milliseconds, so every timestamp passes through :func:`epoch_ms_from_any`.
Magnitude decides the unit:

    > 1e17  nanoseconds
    > 1e14  microseconds
    > 1e11  milliseconds
    else    seconds
"""

import math
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from livechart.config.configurations import EPOCH_FIELDS

NS_THRESHOLD = 1e17
US_THRESHOLD = 1e14
MS_THRESHOLD = 1e11

MISSING_LABEL = "—"


def round_half_up(value: float) -> int:
    """Round to the nearest integer with ties toward +infinity."""
    return math.floor(value + 0.5)


def to_finite(value: Any) -> Optional[float]:
    """Return ``value`` as a finite float, or None when it is not numeric."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def epoch_ms_from_any(value: Any) -> Optional[int]:
    """Normalize a timestamp of unknown unit to integer milliseconds.

    Returns None for non-numeric, non-finite or non-positive input, and for
    values that round to zero milliseconds.
    """
    number = to_finite(value)
    if number is None or number <= 0:
        return None

    if number > NS_THRESHOLD:
        ms = round_half_up(number / 1e6)
    elif number > US_THRESHOLD:
        ms = round_half_up(number / 1e3)
    elif number > MS_THRESHOLD:
        ms = round_half_up(number)
    else:
        ms = round_half_up(number * 1000)
    return ms if ms > 0 else None


def first_present(row: Mapping[str, Any], candidates: tuple[str, ...]) -> Any:
    """Return the value of the first candidate field that is present and not None."""
    for name in candidates:
        value = row.get(name)
        if value is not None:
            return value
    return None


def row_epoch_ms(row: Any) -> Optional[int]:
    if not isinstance(row, Mapping):
        return None
    return epoch_ms_from_any(first_present(row, EPOCH_FIELDS))


def _utc(ms: Any) -> Optional[datetime]:
    """UTC datetime for ``ms``, or None when it is missing or out of range."""
    if ms is None or to_finite(ms) is None:
        return None
    try:
        return datetime.fromtimestamp(int(ms) / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def time_label(ms: Optional[int]) -> str:
    """``HH:MM:SS`` in UTC, or an empty string for a missing timestamp."""
    moment = _utc(ms)
    if moment is None:
        return ""
    return moment.strftime("%H:%M:%S")


def datetime_label(ms: Optional[int]) -> str:
    """``YYYY-MM-DD HH:MM:SS.mmm`` in UTC."""
    moment = _utc(ms)
    if moment is None:
        return MISSING_LABEL
    return f"{moment.strftime('%Y-%m-%d %H:%M:%S')}.{int(ms) % 1000:03d}"
