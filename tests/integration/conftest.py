from datetime import datetime, timedelta, timezone

import pytest

from vestry.civil_time import FixedClock
from vestry.config import TelegramConfig, VestryConfig
from vestry.dispatch import WorkflowDispatcher
from vestry.records import InMemoryRecordSource, YouthLeader
from vestry.store import InMemoryStateStore
from vestry.transports import InMemoryTransport

MSK = timezone(timedelta(hours=3))
NOW = datetime(2025, 1, 20, 10, 0, tzinfo=MSK)

OPTIONS = {
    "worship_services": ["Team A", "Team B"],
    "scripture_readers": ["Reader 1"],
}


class Bot:
    """A dispatcher wired to in-memory collaborators, driven like a chat client."""

    def __init__(self, store=None, records=None):
        self.store = store or InMemoryStateStore()
        self.records = records or InMemoryRecordSource(
            options=OPTIONS,
            leaders=[YouthLeader(name="Anna", telegram_id=11, people=["Petr", "Olga"])],
        )
        self.transport = InMemoryTransport()
        self.clock = FixedClock(NOW)
        self.config = VestryConfig(telegram=TelegramConfig(admin_ids=[1]))
        self.dispatcher = WorkflowDispatcher(
            self.store, self.transport, self.records, config=self.config, clock=self.clock
        )

    async def start(self, kind, subject=42):
        return await self.dispatcher.start(kind, subject, subject)

    async def press(self, payload, subject=42):
        return await self.dispatcher.handle_interaction(subject, subject, payload=payload)

    async def say(self, text, subject=42):
        return await self.dispatcher.handle_interaction(subject, subject, free_text=text)

    async def session(self, kind, subject=42):
        return await self.dispatcher.sessions.find(kind, subject)


@pytest.fixture
def bot():
    return Bot()


@pytest.fixture
def make_bot():
    return Bot
