"""In-memory transport for testing."""

from __future__ import annotations

from typing import List, Optional, Sequence

from pydantic import BaseModel, Field

from .base import ChatTransport, Choice, SendResult


class SentMessage(BaseModel):
    conversation_id: str
    text: str
    choices: List[Choice] = Field(default_factory=list)
    poll: bool = False
    thread_id: Optional[int] = None
    message_id: int


class InMemoryTransport(ChatTransport):
    """Record outgoing messages instead of delivering them.

    Setting ``fail`` makes every send report failure, which lets tests
    exercise retry and error paths.
    """

    def __init__(self) -> None:
        self.sent: List[SentMessage] = []
        self.acknowledged: List[str] = []
        self.fail = False
        self._next_id = 0

    def _record(self, conversation_id, text, choices=(), poll=False, thread_id=None) -> SendResult:
        if self.fail:
            return SendResult(ok=False, error="delivery disabled")
        self._next_id += 1
        self.sent.append(
            SentMessage(
                conversation_id=str(conversation_id),
                text=text,
                choices=list(choices),
                poll=poll,
                thread_id=thread_id,
                message_id=self._next_id,
            )
        )
        return SendResult(ok=True, message_id=self._next_id)

    async def send_text(
        self, conversation_id: str | int, text: str, thread_id: Optional[int] = None
    ) -> SendResult:
        return self._record(conversation_id, text, thread_id=thread_id)

    async def send_choice(
        self,
        conversation_id: str | int,
        text: str,
        choices: Sequence[Choice],
        poll: bool = False,
        thread_id: Optional[int] = None,
    ) -> SendResult:
        return self._record(conversation_id, text, choices, poll, thread_id)

    async def acknowledge_interaction(
        self, interaction_id: str, text: Optional[str] = None, alert: bool = False
    ) -> None:
        self.acknowledged.append(interaction_id)

    @property
    def last(self) -> SentMessage:
        return self.sent[-1]

    def to(self, conversation_id: str | int) -> List[SentMessage]:
        return [m for m in self.sent if m.conversation_id == str(conversation_id)]
