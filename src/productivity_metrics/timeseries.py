"""Time bucketing for daily, weekly, and monthly metric series.

Buckets are keyed by label strings whose lexicographic order equals their
chronological order: ``YYYY-MM-DD`` for days and ISO weeks (the Monday the
week starts on) and ``YYYY-MM`` for months. Buckets are only created for
instants that occur; gaps are never zero-filled.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Tuple

from .models import TimeSeries
from .stats import safe_average

GRANULARITIES = ("daily", "weekly", "monthly")


def day_key(instant: datetime) -> str:
    return instant.strftime("%Y-%m-%d")


def week_key(instant: datetime) -> str:
    """Return the Monday that starts the ISO week containing ``instant``."""
    week_start = instant.date() - timedelta(days=instant.weekday())
    return week_start.isoformat()


def month_key(instant: datetime) -> str:
    return instant.strftime("%Y-%m")


_KEY_FUNCTIONS = {
    "daily": day_key,
    "weekly": week_key,
    "monthly": month_key,
}


@dataclass(slots=True)
class Bucket:
    """Running ``{sum, count}`` for a single time bucket."""

    total: float = 0.0
    count: int = 0


class BucketedSeries:
    """Accumulates values into day, week, and month buckets at once."""

    def __init__(self) -> None:
        self._buckets: Dict[str, Dict[str, Bucket]] = {
            granularity: {} for granularity in GRANULARITIES
        }

    def add(self, instant: datetime, value: float) -> None:
        """Add one sample keyed by ``instant`` to every granularity."""
        for granularity, key_function in _KEY_FUNCTIONS.items():
            bucket = self._buckets[granularity].setdefault(key_function(instant), Bucket())
            bucket.total += value
            bucket.count += 1

    def counts(self, granularity: str) -> TimeSeries:
        """Return the number of samples per bucket, sorted by bucket start."""
        buckets = self._sorted(granularity)
        return TimeSeries(
            labels=tuple(label for label, _ in buckets),
            values=tuple(float(bucket.count) for _, bucket in buckets),
        )

    def means(self, granularity: str) -> TimeSeries:
        """Return the mean sample value per bucket, sorted by bucket start."""
        buckets = self._sorted(granularity)
        return TimeSeries(
            labels=tuple(label for label, _ in buckets),
            values=tuple(safe_average(bucket.total, bucket.count) for _, bucket in buckets),
        )

    def _sorted(self, granularity: str) -> Tuple[Tuple[str, Bucket], ...]:
        return tuple(sorted(self._buckets[granularity].items()))
