"""Time-bounded caching for slow lookups."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from .civil_time import Clock, SystemClock
from .records import RecordSource, YouthLeader

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TTLCache(Generic[T]):
    """Hold the result of ``loader`` for ``ttl`` before loading it again."""

    def __init__(
        self,
        loader: Callable[[], Awaitable[T]],
        ttl: timedelta,
        clock: Optional[Clock] = None,
    ) -> None:
        self._loader = loader
        self.ttl = ttl
        self._clock = clock or SystemClock()
        self._value: Optional[T] = None
        self.last_refresh: Optional[datetime] = None
        self._lock = asyncio.Lock()

    def is_fresh(self) -> bool:
        if self.last_refresh is None:
            return False
        return self._clock.now() - self.last_refresh < self.ttl

    async def get(self) -> T:
        async with self._lock:
            if not self.is_fresh():
                self._value = await self._loader()
                self.last_refresh = self._clock.now()
            return self._value  # type: ignore[return-value]


class LeaderDirectory:
    """Youth leader lookups backed by a ``TTLCache``."""

    def __init__(self, records: RecordSource, cache: TTLCache[list[YouthLeader]] | None = None,
                 ttl: timedelta = timedelta(minutes=5), clock: Optional[Clock] = None) -> None:
        self._records = records
        self._cache = cache or TTLCache(records.youth_leaders, ttl, clock)

    async def leaders(self) -> list[YouthLeader]:
        return await self._cache.get()

    async def leader_for_subject(self, subject_id: str | int) -> YouthLeader | None:
        for leader in await self.leaders():
            if leader.telegram_id is not None and str(leader.telegram_id) == str(subject_id):
                return leader
        logger.debug(f"No youth leader registered for {subject_id}")
        return None
