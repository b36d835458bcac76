"""Record of scheduled actions already performed."""

from __future__ import annotations

import logging
from datetime import datetime

from ..constants import SCHEDULER_KIND
from ..store import StateStore

logger = logging.getLogger(__name__)


class FiredLedger:
    """Idempotency keys for scheduled actions, kept in the state store.

    Each key is its own store entry under the ``scheduler`` kind, so two
    keys never contend for the same row.
    """

    def __init__(self, store: StateStore) -> None:
        self._store = store

    async def has_fired(self, key: str) -> bool:
        return await self._store.get(key, SCHEDULER_KIND) is not None

    async def mark_fired(self, key: str, at: datetime) -> None:
        await self._store.set(key, SCHEDULER_KIND, {"fired_at": at.isoformat()})
        logger.debug(f"Marked {key} as fired")
