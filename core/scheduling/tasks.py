"""
Frostline Scheduling - Recurring Tasks
======================================
Periodic background jobs, decoupled from the code they run.

A RecurringTask wraps a zero-argument callable with:
- start() / stop()  a daemon thread ticking every interval_seconds
- trigger()         run once, synchronously, on the caller's thread

Rules:
- Runs of one task never overlap (manual trigger vs. scheduled tick).
- A failing run is logged and recorded; the next tick runs as usual.
  No retries inside a tick.
- Tests call trigger() directly; nothing here sleeps unless started.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from core.time.clock import Clock, get_default_clock

logger = logging.getLogger("frostline.scheduling")


class SchedulerError(Exception):
    """Base error for scheduler registration."""
    pass


class DuplicateTaskError(SchedulerError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Task '{name}' is already registered.")


class RecurringTask:
    def __init__(
        self,
        name: str,
        func: Callable[[], Any],
        interval_seconds: float,
        *,
        run_on_start: bool = False,
        clock: Optional[Clock] = None,
    ):
        if not name:
            raise ValueError("Task name must be non-empty.")
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}.")
        self.name = name
        self.interval_seconds = interval_seconds
        self.run_on_start = run_on_start
        self._func = func
        self._clock = clock or get_default_clock()

        self._run_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

        self.run_count = 0
        self.failure_count = 0
        self.last_run_at: Optional[datetime] = None
        self.last_result: Any = None
        self.last_error: Optional[BaseException] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def trigger(self) -> Any:
        """
        Run the job now. Returns its result, or None when it failed.
        Blocks while a scheduled run of the same task is in progress.
        """
        with self._run_lock:
            self.last_run_at = self._clock.now_utc()
            self.run_count += 1
            try:
                result = self._func()
            except Exception as exc:
                self.failure_count += 1
                self.last_error = exc
                logger.error("Task %s failed", self.name, exc_info=True)
                return None
            self.last_result = result
            self.last_error = None
            logger.info("Task %s completed", self.name)
            return result

    def start(self) -> None:
        if self.is_running:
            logger.warning("Task %s is already running", self.name)
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._loop, name=f"frostline-{self.name}", daemon=True,
        )
        self._thread.start()
        logger.info("Task %s started (every %ss)", self.name, self.interval_seconds)

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
        self._thread = None
        logger.info("Task %s stopped", self.name)

    def _loop(self) -> None:
        if self.run_on_start:
            self.trigger()
        while not self._stop_event.wait(self.interval_seconds):
            self.trigger()

    def status(self) -> dict:
        return {
            "name": self.name,
            "interval_seconds": self.interval_seconds,
            "is_running": self.is_running,
            "run_count": self.run_count,
            "failure_count": self.failure_count,
            "last_run_at": None if self.last_run_at is None else self.last_run_at.isoformat(),
            "last_error": None if self.last_error is None else repr(self.last_error),
        }


class Scheduler:
    """Named registry of recurring tasks, started and stopped together."""

    def __init__(self, clock: Optional[Clock] = None):
        self._clock = clock or get_default_clock()
        self._tasks: Dict[str, RecurringTask] = {}
        self._lock = threading.Lock()

    def register(
        self,
        name: str,
        func: Callable[[], Any],
        interval_seconds: float,
        *,
        run_on_start: bool = False,
    ) -> RecurringTask:
        task = RecurringTask(
            name, func, interval_seconds, run_on_start=run_on_start, clock=self._clock,
        )
        with self._lock:
            if name in self._tasks:
                raise DuplicateTaskError(name)
            self._tasks[name] = task
        return task

    def get(self, name: str) -> RecurringTask:
        with self._lock:
            task = self._tasks.get(name)
        if task is None:
            raise KeyError(f"No task registered as '{name}'.")
        return task

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._tasks)

    def trigger(self, name: str) -> Any:
        return self.get(name).trigger()

    def start(self) -> None:
        for name in self.names():
            self.get(name).start()

    def stop(self, timeout: Optional[float] = None) -> None:
        for name in self.names():
            self.get(name).stop(timeout)

    def status(self) -> List[dict]:
        return [self.get(name).status() for name in self.names()]
