"""Boundary to the document database behind the forms and jobs."""

from __future__ import annotations

from datetime import date, datetime
from typing import Protocol, Sequence, Union

from .models import (
    PrayerRecord,
    ScheduleItem,
    SundayServiceRecord,
    UpsertResult,
    YouthLeader,
    YouthReport,
)

Record = Union[SundayServiceRecord, ScheduleItem, YouthReport, PrayerRecord]


class RecordSource(Protocol):
    """Protocol for the domain data source backing the forms and jobs."""

    async def find_record_matching_date(
        self, day: date, stream: str
    ) -> SundayServiceRecord | None:
        """Return the Sunday service stream held for ``day``."""

    async def upsert_record(self, record: Record) -> UpsertResult:
        """Create or update ``record``; a record with an ``id`` is updated."""

    async def get_record(self, record_id: str) -> ScheduleItem | None:
        """Return a schedule item by id."""

    async def list_options(self, name: str) -> list[str]:
        """Return an option list such as ``worship_services`` or ``scripture_readers``."""

    async def list_week_records(self, week_start: date) -> list[ScheduleItem]:
        """Return schedule items of the seven local days starting at ``week_start``."""

    async def find_events_between(
        self, start: datetime, end: datetime, types: Sequence[str]
    ) -> list[ScheduleItem]:
        """Return schedule items of ``types`` starting within ``[start, end)``."""

    async def youth_leaders(self) -> list[YouthLeader]:
        """Return the youth leader directory."""

    async def people_for_leader(self, leader: str) -> list[str]:
        """Return the people a youth leader cares for."""

    async def list_prayer_records(self) -> list[PrayerRecord]:
        """Return prayer records, oldest week first."""
