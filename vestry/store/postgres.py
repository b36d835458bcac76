"""PostgreSQL implementation of the state store."""

from __future__ import annotations

from typing import Any

import asyncpg

from .base import StateStore
from .codec import decode_payload, encode_payload


class PostgresStateStore(StateStore):
    """Persist form state using PostgreSQL."""

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        conn = await asyncpg.connect(self._dsn)
        if not self._initialized:
            await self._ensure_schema(conn)
            self._initialized = True
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS user_form_state (
                user_id TEXT NOT NULL,
                state_type TEXT NOT NULL,
                payload JSONB NOT NULL,
                updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
                PRIMARY KEY (user_id, state_type)
            )
            """
        )

    # ------------------------------------------------------------------
    async def get(self, subject_id: str | int, kind: str) -> dict[str, Any] | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                "SELECT payload::text AS payload FROM user_form_state WHERE user_id = $1 AND state_type = $2",
                str(subject_id),
                kind,
            )
        finally:
            await conn.close()
        if not row:
            return None
        return decode_payload(row["payload"])

    async def set(self, subject_id: str | int, kind: str, payload: dict[str, Any]) -> None:
        conn = await self._connect()
        try:
            await conn.execute(
                """
                INSERT INTO user_form_state (user_id, state_type, payload, updated_at)
                VALUES ($1, $2, $3::jsonb, now())
                ON CONFLICT (user_id, state_type)
                DO UPDATE SET payload = EXCLUDED.payload, updated_at = now()
                """,
                str(subject_id),
                kind,
                encode_payload(payload),
            )
        finally:
            await conn.close()

    async def delete(self, subject_id: str | int, kind: str) -> None:
        conn = await self._connect()
        try:
            await conn.execute(
                "DELETE FROM user_form_state WHERE user_id = $1 AND state_type = $2",
                str(subject_id),
                kind,
            )
        finally:
            await conn.close()

    async def ping(self) -> None:
        conn = await self._connect()
        await conn.close()
