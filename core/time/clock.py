"""
Frostline Core Time - Clock
===========================
Where "now" comes from.

Engines and lifecycle jobs take a Clock in their constructor and fall
back to the process default. Expiry arithmetic therefore replays
exactly in tests: hand a FixedClock in and move it with advance().
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    def now_utc(self) -> datetime:
        """Current time, timezone-aware, in UTC."""
        ...  # pragma: no cover


class SystemClock:
    def now_utc(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """
    Stands still until told to move.

        clock = FixedClock(datetime(2026, 3, 1, tzinfo=timezone.utc))
        clock.advance(days=1)
    """

    def __init__(self, fixed_dt: datetime) -> None:
        if fixed_dt.tzinfo is None:
            raise ValueError("FixedClock requires timezone-aware datetime.")
        self._now = fixed_dt.astimezone(timezone.utc)

    def now_utc(self) -> datetime:
        return self._now

    def advance(self, seconds: float = 0, *, days: float = 0) -> None:
        self._now = self._now + timedelta(seconds=seconds, days=days)


# ══════════════════════════════════════════════════════════════
# PROCESS DEFAULT
# ══════════════════════════════════════════════════════════════

_lock = threading.Lock()
_default_clock: Clock = SystemClock()


def set_default_clock(clock: Clock) -> Clock:
    """Swap the process default clock; returns the previous one."""
    global _default_clock
    with _lock:
        previous, _default_clock = _default_clock, clock
    return previous


def get_default_clock() -> Clock:
    return _default_clock


def now_utc() -> datetime:
    return _default_clock.now_utc()
