"""Duration and averaging helpers shared by the metric aggregators.

This module provides utilities for:
- Converting the gap between two instants into minutes or hours.
- Averaging a running total without ever producing NaN.
- Formatting minute-based durations as ``HH:MM``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional


def minutes_between(start: Optional[datetime], end: Optional[datetime]) -> Optional[float]:
    """Return ``end - start`` in minutes, or ``None`` if either instant is missing."""
    if start is None or end is None:
        return None
    return (end - start).total_seconds() / 60.0


def hours_between(start: Optional[datetime], end: Optional[datetime]) -> Optional[float]:
    """Return ``end - start`` in hours, or ``None`` if either instant is missing."""
    if start is None or end is None:
        return None
    return (end - start).total_seconds() / 3600.0


def safe_average(total: float, count: int) -> float:
    """Divide a running total by its sample count.

    Args:
        total: Accumulated sum.
        count: Number of samples that contributed to ``total``.

    Returns:
        ``total / count``, or ``0.0`` when ``count`` is not positive.
    """
    if count <= 0:
        return 0.0
    return total / count


def format_duration(minutes: Optional[float]) -> str:
    """Format minutes as ``HH:MM``.

    Args:
        minutes: Duration in minutes.

    Returns:
        ``"n/a"`` when ``minutes`` is ``None``; otherwise a rounded
        ``HH:MM`` string. Hours are not wrapped at 24.
    """
    if minutes is None:
        return "n/a"

    total_minutes = int(round(minutes))
    sign = "-" if total_minutes < 0 else ""
    total_minutes = abs(total_minutes)
    hours = total_minutes // 60
    remaining_minutes = total_minutes % 60
    return f"{sign}{hours:02d}:{remaining_minutes:02d}"
