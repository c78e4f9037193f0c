"""
Frostline Core Time - Public API
================================
Explicit clock protocol and temporal helpers.
"""

from core.time.clock import (
    Clock,
    FixedClock,
    SystemClock,
    get_default_clock,
    now_utc,
    set_default_clock,
)
from core.time.temporal import (
    SECONDS_PER_DAY,
    TimeWindow,
    add_days,
    days_until,
    ensure_aware,
    is_past,
)

__all__ = [
    "Clock",
    "FixedClock",
    "SystemClock",
    "get_default_clock",
    "set_default_clock",
    "now_utc",
    "SECONDS_PER_DAY",
    "TimeWindow",
    "add_days",
    "days_until",
    "ensure_aware",
    "is_past",
]
