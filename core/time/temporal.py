"""
Frostline Core Time - Temporal Helpers
======================================
Shelf-life arithmetic and promotion validity windows.
Every helper takes "now" as an argument; none of them reads a clock.

Naive datetimes (legacy rows, date-only imports) are read as UTC.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

SECONDS_PER_DAY = 24 * 60 * 60


def ensure_aware(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def days_until(target: datetime, now: datetime) -> int:
    """
    Whole days remaining until `target`, rounded up.

    A batch expiring in 9 days and 1 hour is 10 days out; a batch
    that expired 3 hours ago is 0 days out; negative once a full day
    has passed.
    """
    delta = ensure_aware(target) - ensure_aware(now)
    return math.ceil(delta.total_seconds() / SECONDS_PER_DAY)


def is_past(target: datetime, now: datetime) -> bool:
    """True once `target` is strictly before `now`."""
    return ensure_aware(target) < ensure_aware(now)


def add_days(dt: datetime, days: float) -> datetime:
    return dt + timedelta(days=days)


# ══════════════════════════════════════════════════════════════
# VALIDITY WINDOW - closed interval [start, end]
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TimeWindow:
    """
    The period a promotion may be applied in, both ends inclusive.

    An inverted window is representable so a bad stored row can be
    loaded and reported by validation; it simply never contains
    any instant.
    """

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        object.__setattr__(self, "start", ensure_aware(self.start))
        object.__setattr__(self, "end", ensure_aware(self.end))

    @property
    def is_valid(self) -> bool:
        return self.start < self.end

    def contains(self, now: datetime) -> bool:
        return self.start <= ensure_aware(now) <= self.end

    def has_ended(self, now: datetime) -> bool:
        return is_past(self.end, now)

    def days_left(self, now: datetime) -> int:
        """Days until the window closes; 0 once it has closed."""
        if self.end <= ensure_aware(now):
            return 0
        return days_until(self.end, now)
