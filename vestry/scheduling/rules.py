"""Recurrence rules deciding whether a periodic action is due.

Calendar rules compare wall-clock readings in the rule's timezone, so a rule
for "Monday 09:00" means 09:00 on the local clock whatever the UTC offset.
The relative rule works on absolute instants.

Every rule is due for a bounded window ``[target, target + grace)``. The cron
driving the scheduler may run early, late or twice; ``is_due`` is pure and
idempotence is handled by the caller's fired ledger.
"""

from __future__ import annotations

import abc
from datetime import datetime, timedelta
from typing import Optional, Tuple

from pydantic import BaseModel, Field, field_validator

from ..civil_time import WallClock, aware, last_day_of_month, wall_clock_fields
from ..constants import DEFAULT_GRACE_MINUTES, DEFAULT_TIMEZONE


class ScheduleRule(BaseModel, abc.ABC):
    grace_minutes: int = DEFAULT_GRACE_MINUTES

    @property
    def grace(self) -> timedelta:
        return timedelta(minutes=self.grace_minutes)

    @abc.abstractmethod
    def is_due(self, now: datetime) -> bool:
        """Whether ``now`` falls inside the rule's due window."""


class CalendarRule(ScheduleRule):
    """A rule firing at ``hour:minute`` on days picked by ``matches_day``."""

    hour: int = Field(ge=0, le=23)
    minute: int = Field(default=0, ge=0, le=59)
    timezone: str = DEFAULT_TIMEZONE

    @abc.abstractmethod
    def matches_day(self, local: WallClock) -> bool:
        """Whether the local day is one the rule fires on."""

    def elapsed(self, local: WallClock) -> timedelta:
        """Wall-clock time since today's target; negative before it."""
        target = local.as_naive().replace(hour=self.hour, minute=self.minute, second=0)
        return local.as_naive() - target

    def is_due(self, now: datetime) -> bool:
        local = wall_clock_fields(now, self.timezone)
        if not self.matches_day(local):
            return False
        elapsed = self.elapsed(local)
        return timedelta(0) <= elapsed < self.grace

    def occurrence_key(self, now: datetime) -> str:
        """Identify the occurrence ``now`` falls in: its local date."""
        return wall_clock_fields(now, self.timezone).date.isoformat()


class WeeklyRule(CalendarRule):
    weekday: int = Field(ge=0, le=6)

    def matches_day(self, local: WallClock) -> bool:
        return local.weekday == self.weekday


class MonthlyDayRule(CalendarRule):
    day: int = Field(ge=1, le=31)

    def matches_day(self, local: WallClock) -> bool:
        return local.day == self.day


class LastDayOfMonthRule(CalendarRule):
    def matches_day(self, local: WallClock) -> bool:
        return local.day == last_day_of_month(local.year, local.month, self.timezone)


class RelativeOffsetRule(ScheduleRule):
    """Fire ``offset_hours`` before ``event_at``; never once the event has begun."""

    event_at: datetime
    offset_hours: float

    @field_validator("event_at")
    @classmethod
    def _aware_event(cls, value: datetime) -> datetime:
        return aware(value)

    @property
    def target(self) -> datetime:
        return self.event_at - timedelta(hours=self.offset_hours)

    def window(self) -> Tuple[datetime, datetime]:
        return self.target, self.target + self.grace

    def is_due(self, now: datetime) -> bool:
        now = aware(now)
        if self.event_at <= now:
            return False
        since = now - self.target
        return timedelta(0) <= since < self.grace


def describe(rule: ScheduleRule, now: Optional[datetime] = None) -> str:
    name = type(rule).__name__
    if isinstance(rule, WeeklyRule):
        text = f"{name}(weekday={rule.weekday}, {rule.hour:02d}:{rule.minute:02d} {rule.timezone})"
    elif isinstance(rule, MonthlyDayRule):
        text = f"{name}(day={rule.day}, {rule.hour:02d}:{rule.minute:02d} {rule.timezone})"
    elif isinstance(rule, CalendarRule):
        text = f"{name}({rule.hour:02d}:{rule.minute:02d} {rule.timezone})"
    elif isinstance(rule, RelativeOffsetRule):
        start, end = rule.window()
        text = f"{name}({start.isoformat()} .. {end.isoformat()})"
    else:
        text = name
    if now is not None:
        text += " due" if rule.is_due(now) else " not due"
    return text
