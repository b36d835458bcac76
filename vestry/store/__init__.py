"""Keyed state store for conversation sessions and scheduler bookkeeping."""

from __future__ import annotations

import logging
import os
from typing import Optional

from ..config import VestryConfig, load_config
from ..errors import StoreUnavailableError
from .base import StateStore
from .inmemory import InMemoryStateStore
from .sqlite import SQLiteStateStore

try:  # pragma: no cover - optional dependency
    from .postgres import PostgresStateStore
except Exception:  # pragma: no cover - optional dependency
    PostgresStateStore = None  # type: ignore

logger = logging.getLogger(__name__)

_store_instance: StateStore | None = None


def _build_store(database_url: str, config: VestryConfig) -> StateStore:
    if database_url.startswith("sqlite://"):
        path = database_url.replace("sqlite://", "", 1)
        return SQLiteStateStore(path)
    if database_url.startswith("postgres://") or database_url.startswith("postgresql://"):
        if PostgresStateStore is None:
            raise RuntimeError("Postgres support not available")
        return PostgresStateStore(database_url)
    if database_url.startswith("redis://") or database_url.startswith("rediss://"):
        from .redis import RedisStateStore

        return RedisStateStore(database_url, ttl_seconds=config.store.redis.ttl_seconds)
    raise ValueError(f"Unsupported database backend: {database_url}")


async def open_store(
    database_url: Optional[str] = None, config: Optional[VestryConfig] = None
) -> StateStore:
    """Factory function to obtain the process-wide state store.

    The backend is selected from ``database_url``, the ``VESTRY_DATABASE_URL``
    or ``DATABASE_URL`` environment variables, or loaded configuration. With no
    database configured an in-memory store is returned. When the durable
    backend cannot be reached the in-memory store is used for the rest of the
    process lifetime, unless ``store.allow_memory_fallback`` is disabled, in
    which case ``StoreUnavailableError`` is raised.
    """

    global _store_instance
    if _store_instance is not None and database_url is None and config is None:
        return _store_instance

    config = config or load_config()
    database_url = (
        database_url
        or os.getenv("VESTRY_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or config.store.database_url
    )

    if not database_url:
        _store_instance = InMemoryStateStore()
        return _store_instance

    try:
        store = _build_store(database_url, config)
        await store.ping()
    except (ValueError, RuntimeError, ImportError):
        raise
    except Exception as exc:
        if not config.store.allow_memory_fallback:
            raise StoreUnavailableError(f"State store unreachable: {exc}") from exc
        logger.warning(
            f"State store unreachable ({exc}); falling back to in-memory storage"
        )
        store = InMemoryStateStore()

    _store_instance = store
    return _store_instance


__all__ = [
    "StateStore",
    "InMemoryStateStore",
    "SQLiteStateStore",
    "PostgresStateStore",
    "open_store",
]
