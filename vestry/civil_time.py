"""Wall-clock arithmetic in a named civil timezone."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import NamedTuple, Protocol
from zoneinfo import ZoneInfo

from .constants import DEFAULT_TIMEZONE


class WallClock(NamedTuple):
    """Calendar fields of an instant as read on a wall clock in some zone.

    ``weekday`` follows ``datetime.weekday``: Monday is 0, Sunday is 6.
    """

    year: int
    month: int
    day: int
    weekday: int
    hour: int
    minute: int
    second: int

    def as_naive(self) -> datetime:
        return datetime(self.year, self.month, self.day, self.hour, self.minute, self.second)

    @property
    def date(self) -> date:
        return date(self.year, self.month, self.day)


def aware(instant: datetime) -> datetime:
    """Return ``instant`` with a timezone; naive values are read as UTC."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant


def to_zone(instant: datetime, zone_name: str = DEFAULT_TIMEZONE) -> datetime:
    return aware(instant).astimezone(ZoneInfo(zone_name))


def wall_clock_fields(instant: datetime, zone_name: str = DEFAULT_TIMEZONE) -> WallClock:
    local = to_zone(instant, zone_name)
    return WallClock(
        local.year,
        local.month,
        local.day,
        local.weekday(),
        local.hour,
        local.minute,
        local.second,
    )


def last_day_of_month(year: int, month: int, zone_name: str = DEFAULT_TIMEZONE) -> int:
    """Return the number of the last day of ``month``.

    Computed as day zero of the following month. The zone does not change the
    answer for any real calendar but is validated so a typo fails loudly.
    """
    ZoneInfo(zone_name)
    following = date(year + month // 12, month % 12 + 1, 1)
    return (following - timedelta(days=1)).day


def local_instant(
    day: date, at: time, zone_name: str = DEFAULT_TIMEZONE
) -> datetime:
    """Build the aware instant for wall-clock ``day`` ``at`` in ``zone_name``."""
    return datetime.combine(day, at, tzinfo=ZoneInfo(zone_name))


def week_start(instant: datetime, zone_name: str = DEFAULT_TIMEZONE, weeks_ahead: int = 0) -> date:
    """Monday of the local week containing ``instant``, shifted by ``weeks_ahead``."""
    local = wall_clock_fields(instant, zone_name)
    monday = local.date - timedelta(days=local.weekday)
    return monday + timedelta(weeks=weeks_ahead)


def upcoming_weekdays(
    instant: datetime, weekday: int, count: int = 2, zone_name: str = DEFAULT_TIMEZONE
) -> list[date]:
    """The next ``count`` local dates falling on ``weekday``, today included."""
    today = wall_clock_fields(instant, zone_name).date
    offset = (weekday - today.weekday()) % 7
    first = today + timedelta(days=offset)
    return [first + timedelta(weeks=i) for i in range(count)]


class Clock(Protocol):
    def now(self) -> datetime:
        """Return the current aware instant."""


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Clock pinned to one instant; ``advance`` moves it forward."""

    def __init__(self, instant: datetime) -> None:
        self._instant = aware(instant)

    def now(self) -> datetime:
        return self._instant

    def advance(self, delta: timedelta) -> None:
        self._instant = self._instant + delta
