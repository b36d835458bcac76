from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from vestry.civil_time import (
    FixedClock,
    aware,
    last_day_of_month,
    local_instant,
    upcoming_weekdays,
    wall_clock_fields,
    week_start,
)

MSK = ZoneInfo("Europe/Moscow")


def test_wall_clock_fields_converts_into_zone():
    fields = wall_clock_fields(datetime(2025, 1, 20, 6, 0, tzinfo=timezone.utc), "Europe/Moscow")
    assert (fields.year, fields.month, fields.day) == (2025, 1, 20)
    assert fields.weekday == 0
    assert (fields.hour, fields.minute, fields.second) == (9, 0, 0)


def test_wall_clock_fields_crosses_midnight():
    # 22:30 UTC on Sunday is already Monday in Moscow
    fields = wall_clock_fields(datetime(2025, 1, 19, 22, 30, tzinfo=timezone.utc), "Europe/Moscow")
    assert fields.day == 20
    assert fields.weekday == 0
    assert fields.hour == 1


def test_naive_instants_are_read_as_utc():
    naive = wall_clock_fields(datetime(2025, 1, 20, 6, 0), "Europe/Moscow")
    aware = wall_clock_fields(datetime(2025, 1, 20, 6, 0, tzinfo=timezone.utc), "Europe/Moscow")
    assert naive == aware


@pytest.mark.parametrize(
    "year,month,expected",
    [(2025, 1, 31), (2024, 2, 29), (2025, 2, 28), (2025, 4, 30), (2025, 12, 31), (1900, 2, 28)],
)
def test_last_day_of_month(year, month, expected):
    assert last_day_of_month(year, month, "Europe/Moscow") == expected


def test_last_day_of_month_rejects_unknown_zone():
    with pytest.raises(Exception):
        last_day_of_month(2025, 1, "Mars/Olympus")


def test_upcoming_sundays_from_monday_and_sunday():
    monday = datetime(2025, 1, 20, 10, 0, tzinfo=MSK)
    assert upcoming_weekdays(monday, 6) == [date(2025, 1, 26), date(2025, 2, 2)]
    sunday = datetime(2025, 1, 26, 10, 0, tzinfo=MSK)
    assert upcoming_weekdays(sunday, 6) == [date(2025, 1, 26), date(2025, 2, 2)]


def test_week_start():
    wednesday = datetime(2025, 1, 22, 12, 0, tzinfo=MSK)
    assert week_start(wednesday) == date(2025, 1, 20)
    assert week_start(wednesday, weeks_ahead=1) == date(2025, 1, 27)


def test_local_instant_uses_zone_rules():
    instant = local_instant(date(2025, 1, 20), datetime(2025, 1, 1, 19, 0).time())
    assert instant == datetime(2025, 1, 20, 16, 0, tzinfo=timezone.utc)


def test_fixed_clock_advances():
    clock = FixedClock(datetime(2025, 1, 20, 6, 0, tzinfo=timezone.utc))
    clock.advance(timedelta(minutes=5))
    assert clock.now() == datetime(2025, 1, 20, 6, 5, tzinfo=timezone.utc)


def test_aware_reads_naive_values_as_utc():
    assert aware(datetime(2025, 1, 20, 6, 0)) == datetime(2025, 1, 20, 6, 0, tzinfo=timezone.utc)
    local = datetime(2025, 1, 20, 9, 0, tzinfo=MSK)
    assert aware(local) is local
    assert FixedClock(datetime(2025, 1, 20, 6, 0)).now().tzinfo is not None
