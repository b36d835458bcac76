from datetime import date, datetime

import pytest

import vestry.store as store_module
from vestry.config import RedisConfig, StoreConfig, VestryConfig
from vestry.errors import StoreUnavailableError
from vestry.store import InMemoryStateStore, SQLiteStateStore, open_store


@pytest.fixture(autouse=True)
def _reset_store(monkeypatch):
    monkeypatch.delenv("VESTRY_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    store_module._store_instance = None
    yield
    store_module._store_instance = None


@pytest.mark.asyncio
async def test_inmemory_store_crud():
    store = InMemoryStateStore()
    assert await store.get(1, "schedule") is None

    await store.set(1, "schedule", {"step": "title", "data": {"title": "Prayer"}})
    assert await store.get(1, "schedule") == {"step": "title", "data": {"title": "Prayer"}}
    assert await store.get("1", "schedule") is not None
    assert await store.get(1, "sunday_service") is None

    await store.delete(1, "schedule")
    await store.delete(1, "schedule")
    assert await store.get(1, "schedule") is None


@pytest.mark.asyncio
async def test_inmemory_store_returns_copies():
    store = InMemoryStateStore()
    await store.set(1, "youth_report", {"data": {"events": ["a"]}})
    payload = await store.get(1, "youth_report")
    payload["data"]["events"].append("b")
    assert (await store.get(1, "youth_report"))["data"]["events"] == ["a"]


@pytest.mark.asyncio
async def test_known_date_fields_are_revived():
    store = InMemoryStateStore()
    await store.set(
        7,
        "sunday_service",
        {
            "date": "2025-01-26",
            "data": {
                "date": date(2025, 1, 26),
                "date_start": datetime(2025, 1, 20, 19, 0),
                "title": "2025-01-26",
            },
        },
    )
    payload = await store.get(7, "sunday_service")
    assert payload["data"]["date"] == date(2025, 1, 26)
    assert payload["data"]["date_start"] == datetime(2025, 1, 20, 19, 0)
    assert payload["data"]["title"] == "2025-01-26"
    assert payload["date"] == "2025-01-26"


@pytest.mark.asyncio
async def test_sqlite_store_crud_and_restart(tmp_path):
    db_path = tmp_path / "state.db"
    store = SQLiteStateStore(db_path)
    await store.set(5, "schedule", {"step": "date", "data": {"date": datetime(2025, 1, 26, 18, 0)}})
    await store.set(5, "schedule", {"step": "title", "data": {"date": datetime(2025, 1, 26, 18, 0)}})
    store.close()

    reopened = SQLiteStateStore(db_path)
    payload = await reopened.get(5, "schedule")
    assert payload["step"] == "title"
    assert payload["data"]["date"] == datetime(2025, 1, 26, 18, 0)

    await reopened.delete(5, "schedule")
    await reopened.delete(5, "schedule")
    assert await reopened.get(5, "schedule") is None


@pytest.mark.asyncio
async def test_open_store_defaults_to_memory():
    store = await open_store(config=VestryConfig())
    assert isinstance(store, InMemoryStateStore)
    assert await open_store() is store


@pytest.mark.asyncio
async def test_open_store_selects_sqlite(tmp_path):
    store = await open_store(f"sqlite://{tmp_path / 'state.db'}", config=VestryConfig())
    assert isinstance(store, SQLiteStateStore)


@pytest.mark.asyncio
async def test_open_store_falls_back_when_unreachable(tmp_path):
    url = f"sqlite://{tmp_path / 'missing' / 'state.db'}"
    store = await open_store(url, config=VestryConfig())
    assert isinstance(store, InMemoryStateStore)


@pytest.mark.asyncio
async def test_open_store_without_fallback_raises(tmp_path):
    url = f"sqlite://{tmp_path / 'missing' / 'state.db'}"
    config = VestryConfig(store=StoreConfig(allow_memory_fallback=False))
    with pytest.raises(StoreUnavailableError):
        await open_store(url, config=config)


@pytest.mark.asyncio
async def test_open_store_rejects_unknown_backend():
    with pytest.raises(ValueError):
        await open_store("mysql://localhost/state", config=VestryConfig())


@pytest.mark.asyncio
async def test_open_store_redis_unreachable_falls_back():
    store = await open_store("redis://127.0.0.1:1/0", config=VestryConfig())
    assert isinstance(store, InMemoryStateStore)


def test_redis_store_built_from_url_with_configured_ttl():
    from vestry.store.redis import RedisStateStore

    config = VestryConfig(store=StoreConfig(redis=RedisConfig(ttl_seconds=3600)))
    store = store_module._build_store("redis://cache.local:6380/2", config)
    assert isinstance(store, RedisStateStore)
    assert store.url == "redis://cache.local:6380/2"
    assert store.ttl_seconds == 3600
    assert set(RedisConfig.model_fields) == {"ttl_seconds"}
