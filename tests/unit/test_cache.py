from datetime import datetime, timedelta, timezone

import pytest

from vestry.cache import LeaderDirectory, TTLCache
from vestry.civil_time import FixedClock
from vestry.records import InMemoryRecordSource, YouthLeader


@pytest.mark.asyncio
async def test_ttl_cache_reloads_after_expiry():
    clock = FixedClock(datetime(2025, 1, 20, 6, 0, tzinfo=timezone.utc))
    loads = []

    async def loader():
        loads.append(clock.now())
        return len(loads)

    cache = TTLCache(loader, timedelta(minutes=5), clock)
    assert await cache.get() == 1
    clock.advance(timedelta(minutes=4))
    assert await cache.get() == 1
    assert cache.last_refresh == datetime(2025, 1, 20, 6, 0, tzinfo=timezone.utc)

    clock.advance(timedelta(minutes=1))
    assert await cache.get() == 2

    assert cache.is_fresh()


@pytest.mark.asyncio
async def test_leader_directory_matches_by_telegram_id():
    records = InMemoryRecordSource(
        leaders=[YouthLeader(name="Anna", telegram_id=11), YouthLeader(name="Ivan")]
    )
    clock = FixedClock(datetime(2025, 1, 20, 6, 0, tzinfo=timezone.utc))
    directory = LeaderDirectory(records, ttl=timedelta(minutes=5), clock=clock)

    leader = await directory.leader_for_subject("11")
    assert leader is not None and leader.name == "Anna"
    assert await directory.leader_for_subject(12) is None
    assert records.leader_loads == 1

    clock.advance(timedelta(minutes=5))
    await directory.leaders()
    assert records.leader_loads == 2
