"""Load and persist workflow state through the keyed state store."""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import ValidationError

from ..constants import SCHEMA_VERSION
from ..errors import SessionNotFoundError
from ..store import StateStore
from .machine import WorkflowState

logger = logging.getLogger(__name__)


class SessionStore:
    """Persist one ``WorkflowState`` per ``(subject_id, kind)``."""

    def __init__(self, store: StateStore) -> None:
        self._store = store

    async def find(self, kind: str, subject_id: str | int) -> Optional[WorkflowState]:
        payload = await self._store.get(subject_id, kind)
        if payload is None:
            return None
        version = payload.get("schema_version")
        if version != SCHEMA_VERSION:
            logger.warning(
                f"Discarding {kind} session of {subject_id} with schema version {version}"
            )
            await self._store.delete(subject_id, kind)
            return None
        try:
            return WorkflowState.model_validate(payload)
        except ValidationError as exc:
            logger.warning(f"Discarding unreadable {kind} session of {subject_id}: {exc}")
            await self._store.delete(subject_id, kind)
            return None

    async def load(self, kind: str, subject_id: str | int) -> WorkflowState:
        state = await self.find(kind, subject_id)
        if state is None:
            raise SessionNotFoundError(str(subject_id), kind)
        return state

    async def save(self, state: WorkflowState) -> None:
        await self._store.set(state.subject_id, state.kind, state.to_payload())

    async def cancel(self, kind: str, subject_id: str | int) -> None:
        """Delete the session; cancelling a missing session is a no-op."""
        await self._store.delete(subject_id, kind)
