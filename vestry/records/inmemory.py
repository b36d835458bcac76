"""In-memory record source."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Sequence

from ..civil_time import wall_clock_fields
from ..constants import DEFAULT_TIMEZONE
from .models import (
    PrayerRecord,
    ScheduleItem,
    SundayServiceRecord,
    UpsertResult,
    YouthLeader,
    YouthReport,
)
from .source import Record, RecordSource


class InMemoryRecordSource(RecordSource):
    """Keep records in local memory.

    Useful for tests and local runs without a document database.
    """

    def __init__(
        self,
        options: Optional[Dict[str, List[str]]] = None,
        leaders: Optional[List[YouthLeader]] = None,
        timezone: str = DEFAULT_TIMEZONE,
    ) -> None:
        self.options: Dict[str, List[str]] = dict(options or {})
        self.leaders: List[YouthLeader] = list(leaders or [])
        self.services: Dict[str, SundayServiceRecord] = {}
        self.schedule: Dict[str, ScheduleItem] = {}
        self.reports: Dict[str, YouthReport] = {}
        self.prayers: Dict[str, PrayerRecord] = {}
        self.timezone = timezone
        self.leader_loads = 0

    # ------------------------------------------------------------------
    async def find_record_matching_date(
        self, day: date, stream: str
    ) -> SundayServiceRecord | None:
        for record in self.services.values():
            if record.date == day and record.stream == stream:
                return record.model_copy(deep=True)
        return None

    async def upsert_record(self, record: Record) -> UpsertResult:
        record_id = record.id or str(uuid.uuid4())
        stored = record.model_copy(update={"id": record_id}, deep=True)
        if isinstance(stored, SundayServiceRecord):
            self.services[record_id] = stored
        elif isinstance(stored, ScheduleItem):
            self.schedule[record_id] = stored
        elif isinstance(stored, YouthReport):
            self.reports[record_id] = stored
        elif isinstance(stored, PrayerRecord):
            self.prayers[record_id] = stored
        else:
            return UpsertResult(ok=False, error=f"Unsupported record {type(record).__name__}")
        return UpsertResult(ok=True, id=record_id)

    async def get_record(self, record_id: str) -> ScheduleItem | None:
        item = self.schedule.get(record_id)
        return item.model_copy(deep=True) if item else None

    async def list_options(self, name: str) -> list[str]:
        return list(self.options.get(name, []))

    async def list_week_records(self, week_start: date) -> list[ScheduleItem]:
        week_end = week_start + timedelta(days=7)
        items = [
            item
            for item in self.schedule.values()
            if week_start <= wall_clock_fields(item.starts_at, self.timezone).date < week_end
        ]
        return sorted(items, key=lambda i: i.starts_at)

    async def find_events_between(
        self, start: datetime, end: datetime, types: Sequence[str]
    ) -> list[ScheduleItem]:
        items = [
            item
            for item in self.schedule.values()
            if item.type in types and start <= item.starts_at < end
        ]
        return sorted(items, key=lambda i: i.starts_at)

    async def youth_leaders(self) -> list[YouthLeader]:
        self.leader_loads += 1
        return [leader.model_copy(deep=True) for leader in self.leaders]

    async def people_for_leader(self, leader: str) -> list[str]:
        for entry in self.leaders:
            if entry.name == leader:
                return list(entry.people)
        return []

    async def list_prayer_records(self) -> list[PrayerRecord]:
        records = sorted(self.prayers.values(), key=lambda r: r.date_start)
        return [record.model_copy(deep=True) for record in records]
