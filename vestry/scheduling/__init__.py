"""Recurrence rules and the tick-driven job scheduler."""

from .ledger import FiredLedger
from .rules import (
    CalendarRule,
    LastDayOfMonthRule,
    MonthlyDayRule,
    RelativeOffsetRule,
    ScheduleRule,
    WeeklyRule,
)
from .scheduler import CalendarJob, Scheduler

__all__ = [
    "CalendarJob",
    "CalendarRule",
    "FiredLedger",
    "LastDayOfMonthRule",
    "MonthlyDayRule",
    "RelativeOffsetRule",
    "ScheduleRule",
    "Scheduler",
    "WeeklyRule",
]
