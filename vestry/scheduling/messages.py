"""Texts sent by scheduled jobs."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Sequence

from ..civil_time import to_zone
from ..records import ScheduleItem

DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

POLL_OPTIONS = ("Yes, I'll be there", "Can't make it")


def format_day(day: date) -> str:
    return day.strftime("%d.%m.%Y")


def format_week(week_start: date, items: Sequence[ScheduleItem], zone: str) -> str:
    week_end = week_start + timedelta(days=6)
    header = f"<b>Schedule {format_day(week_start)} - {format_day(week_end)}</b>"
    if not items:
        return f"{header}\n\nNothing is scheduled for this week."

    lines = [header, ""]
    current: date | None = None
    for item in items:
        local = to_zone(item.starts_at, zone)
        if local.date() != current:
            current = local.date()
            lines.append(f"<b>{DAY_NAMES[current.weekday()]}, {format_day(current)}</b>")
        line = f"  {local:%H:%M} {item.title}"
        if item.location:
            line += f" ({item.location})"
        lines.append(line)
    return "\n".join(lines)


def poll_question(event: ScheduleItem, zone: str) -> str:
    local = to_zone(event.starts_at, zone)
    text = f"{event.title} tomorrow at {local:%H:%M}."
    if event.theme:
        text += f' Theme: "{event.theme}".'
    return text + " Are you coming?"


def poll_notice(event: ScheduleItem, zone: str, hours_until_poll: int) -> str:
    local = to_zone(event.starts_at, zone)
    text = (
        f"An attendance poll for {event.title} ({format_day(local.date())} {local:%H:%M}) "
        f"goes out in {hours_until_poll} hours."
    )
    if not event.theme:
        text += " The event has no theme yet."
    return text


YOUTH_REPORT_REMINDER = (
    "Reminder: please send this month's youth care reports. Use /youth_report to start."
)

YOUTH_CARE_REMINDER = (
    "Reminder: check in with the youth leaders about this month's care visits."
)
