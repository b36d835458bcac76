"""Domain data source boundary."""

from .inmemory import InMemoryRecordSource
from .models import (
    PrayerRecord,
    ScheduleItem,
    SundayServiceRecord,
    UpsertResult,
    YouthLeader,
    YouthReport,
)
from .source import Record, RecordSource

__all__ = [
    "InMemoryRecordSource",
    "PrayerRecord",
    "Record",
    "RecordSource",
    "ScheduleItem",
    "SundayServiceRecord",
    "UpsertResult",
    "YouthLeader",
    "YouthReport",
]
