"""SQLite implementation of the state store."""

from __future__ import annotations

import asyncio
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .base import StateStore
from .codec import decode_payload, encode_payload


class SQLiteStateStore(StateStore):
    """Persist form state using SQLite."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS user_form_state (
                user_id TEXT NOT NULL,
                state_type TEXT NOT NULL,
                payload TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                PRIMARY KEY (user_id, state_type)
            )
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        self._conn.commit()

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchone()

    # ------------------------------------------------------------------
    # Store API
    async def get(self, subject_id: str | int, kind: str) -> dict[str, Any] | None:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT payload FROM user_form_state WHERE user_id = ? AND state_type = ?",
            str(subject_id),
            kind,
        )
        if not row:
            return None
        return decode_payload(row["payload"])

    async def set(self, subject_id: str | int, kind: str, payload: dict[str, Any]) -> None:
        await asyncio.to_thread(
            self._execute,
            """
            INSERT INTO user_form_state (user_id, state_type, payload, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT (user_id, state_type)
            DO UPDATE SET payload = excluded.payload, updated_at = excluded.updated_at
            """,
            str(subject_id),
            kind,
            encode_payload(payload),
            datetime.now(timezone.utc).isoformat(),
        )

    async def delete(self, subject_id: str | int, kind: str) -> None:
        await asyncio.to_thread(
            self._execute,
            "DELETE FROM user_form_state WHERE user_id = ? AND state_type = ?",
            str(subject_id),
            kind,
        )

    async def ping(self) -> None:
        await asyncio.to_thread(self._fetchone, "SELECT 1")

    def close(self) -> None:
        self._conn.close()
