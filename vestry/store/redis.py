"""Redis implementation of the state store."""

from __future__ import annotations

from typing import Any, Optional

try:
    import redis.asyncio as redis
except ImportError:
    redis = None

from .base import StateStore
from .codec import decode_payload, encode_payload


class RedisStateStore(StateStore):
    """Keep form state in Redis strings, optionally expiring after ``ttl_seconds``."""

    def __init__(
        self,
        url: str,
        ttl_seconds: Optional[int] = None,
        prefix: str = "vestry:state",
    ) -> None:
        if redis is None:
            raise ImportError("redis package is required for RedisStateStore")

        self.url = url
        self.ttl_seconds = ttl_seconds
        self.prefix = prefix
        self._redis: Optional[Any] = None

    async def connect(self) -> None:
        self._redis = redis.from_url(self.url, decode_responses=True)
        await self._redis.ping()

    async def disconnect(self) -> None:
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    def _key(self, subject_id: str | int, kind: str) -> str:
        return f"{self.prefix}:{subject_id}:{kind}"

    # ------------------------------------------------------------------
    async def get(self, subject_id: str | int, kind: str) -> dict[str, Any] | None:
        if not self._redis:
            await self.connect()
        raw = await self._redis.get(self._key(subject_id, kind))
        return decode_payload(raw) if raw is not None else None

    async def set(self, subject_id: str | int, kind: str, payload: dict[str, Any]) -> None:
        if not self._redis:
            await self.connect()
        await self._redis.set(
            self._key(subject_id, kind), encode_payload(payload), ex=self.ttl_seconds
        )

    async def delete(self, subject_id: str | int, kind: str) -> None:
        if not self._redis:
            await self.connect()
        await self._redis.delete(self._key(subject_id, kind))

    async def ping(self) -> None:
        if not self._redis:
            await self.connect()
            return
        await self._redis.ping()
