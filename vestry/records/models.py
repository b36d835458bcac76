"""Domain records read and written through a record source."""

from __future__ import annotations

import datetime as dt
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from ..civil_time import aware


class SundayServiceRecord(BaseModel):
    """One stream of a Sunday service."""

    id: Optional[str] = None
    date: dt.date
    stream: Literal["1", "2"]
    title: str = ""
    preachers: List[str] = Field(default_factory=list)
    worship_service: str = ""
    song_before_start: bool = False
    num_worship_songs: Optional[int] = None
    solo_song: bool = False
    repentance_song: bool = False
    scripture_reading: str = ""
    scripture_reader: str = ""


class ScheduleItem(BaseModel):
    """An entry of the weekly schedule. Items of the configured types are polled."""

    id: Optional[str] = None
    title: str
    starts_at: dt.datetime
    type: str = ""
    theme: Optional[str] = None
    location: Optional[str] = None

    @field_validator("starts_at")
    @classmethod
    def _aware_start(cls, value: dt.datetime) -> dt.datetime:
        return aware(value)


class YouthLeader(BaseModel):
    name: str
    telegram_id: Optional[int] = None
    people: List[str] = Field(default_factory=list)


class YouthReport(BaseModel):
    id: Optional[str] = None
    leader: str
    person: str
    date: dt.date
    communication_types: List[str] = Field(default_factory=list)
    events: List[str] = Field(default_factory=list)
    help: str = ""
    note: str = ""


class PrayerRecord(BaseModel):
    """A person prayed for during one Monday to Sunday week."""

    id: Optional[str] = None
    person: str
    topic: str
    note: str = ""
    date_start: dt.date
    date_end: dt.date


class UpsertResult(BaseModel):
    ok: bool
    id: Optional[str] = None
    error: Optional[str] = None
