"""Base transport interface for chat delivery."""

from __future__ import annotations

import abc
from typing import Optional, Sequence

from pydantic import BaseModel


class Choice(BaseModel):
    """A button label paired with the callback payload it sends back."""

    label: str
    payload: str = ""


class SendResult(BaseModel):
    ok: bool
    message_id: Optional[int] = None
    error: Optional[str] = None


class ChatTransport(metaclass=abc.ABCMeta):
    """Abstract base transport for a chat platform."""

    async def connect(self) -> None:
        """Open connection to the platform (no-op by default)."""
        pass

    async def disconnect(self) -> None:
        """Close connection to the platform (no-op by default)."""
        pass

    @abc.abstractmethod
    async def send_text(
        self, conversation_id: str | int, text: str, thread_id: Optional[int] = None
    ) -> SendResult:
        """Send a plain message."""
        raise NotImplementedError

    @abc.abstractmethod
    async def send_choice(
        self,
        conversation_id: str | int,
        text: str,
        choices: Sequence[Choice],
        poll: bool = False,
        thread_id: Optional[int] = None,
    ) -> SendResult:
        """Send ``text`` with one button per choice, or a poll when ``poll`` is set.

        Choices are laid out one per row; a poll ignores the payloads and uses
        the labels as answer options.
        """
        raise NotImplementedError

    async def acknowledge_interaction(
        self, interaction_id: str, text: Optional[str] = None, alert: bool = False
    ) -> None:
        """Stop the client's pending spinner for a button press (no-op by default)."""
        pass
