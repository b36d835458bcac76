"""Keyed state store abstraction."""

from __future__ import annotations

from typing import Any, Protocol


class StateStore(Protocol):
    """Protocol for per-subject, per-kind JSON payload storage backends."""

    async def get(self, subject_id: str | int, kind: str) -> dict[str, Any] | None:
        """Return the stored payload or ``None`` when nothing is stored."""

    async def set(self, subject_id: str | int, kind: str, payload: dict[str, Any]) -> None:
        """Upsert the payload for ``(subject_id, kind)``."""

    async def delete(self, subject_id: str | int, kind: str) -> None:
        """Remove the payload. Deleting a missing key is not an error."""

    async def ping(self) -> None:
        """Raise if the backend cannot be reached."""
