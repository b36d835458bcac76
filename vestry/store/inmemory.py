"""In-memory implementation of the state store."""

from __future__ import annotations

from typing import Any, Dict

from .base import StateStore
from .codec import decode_payload, encode_payload


class InMemoryStateStore(StateStore):
    """Store payloads in local memory.

    Used in tests and as the fallback when the durable backend is unreachable.
    Payloads are copied through the JSON codec on every read and write so
    callers never share mutable state with the store.
    """

    def __init__(self) -> None:
        self._items: Dict[str, str] = {}

    @staticmethod
    def _key(subject_id: str | int, kind: str) -> str:
        return f"{subject_id}:{kind}"

    # ------------------------------------------------------------------
    async def get(self, subject_id: str | int, kind: str) -> dict[str, Any] | None:
        raw = self._items.get(self._key(subject_id, kind))
        return decode_payload(raw) if raw is not None else None

    async def set(self, subject_id: str | int, kind: str, payload: dict[str, Any]) -> None:
        self._items[self._key(subject_id, kind)] = encode_payload(payload)

    async def delete(self, subject_id: str | int, kind: str) -> None:
        self._items.pop(self._key(subject_id, kind), None)

    async def ping(self) -> None:
        return None

    def __len__(self) -> int:
        return len(self._items)
