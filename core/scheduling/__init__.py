"""
Frostline Scheduling - Public API
=================================
"""

from core.scheduling.tasks import DuplicateTaskError, RecurringTask, Scheduler, SchedulerError

__all__ = [
    "RecurringTask",
    "Scheduler",
    "SchedulerError",
    "DuplicateTaskError",
]
