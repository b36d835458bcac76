"""Shared plumbing for the step-by-step data-entry forms."""

from __future__ import annotations

import abc
import logging
from typing import Any, List, Optional, Sequence, Tuple

from ...cache import LeaderDirectory
from ...civil_time import Clock
from ...config import VestryConfig
from ...records import RecordSource
from ...results import Outcome
from ...transports import ChatTransport, Choice
from ..actions import Action
from ..codec import callback_payload
from ..machine import WorkflowDefinition, WorkflowState, advance, merge_data
from ..session import SessionStore

logger = logging.getLogger(__name__)

Prompt = Tuple[str, List[Choice]]


class FormContext:
    """Collaborators every form needs."""

    def __init__(
        self,
        sessions: SessionStore,
        transport: ChatTransport,
        records: RecordSource,
        clock: Clock,
        config: VestryConfig,
        leaders: LeaderDirectory,
    ) -> None:
        self.sessions = sessions
        self.transport = transport
        self.records = records
        self.clock = clock
        self.config = config
        self.leaders = leaders


class FormHandler(metaclass=abc.ABCMeta):
    """Drive one workflow kind: render the current step and react to actions.

    Handlers build the next state with the pure machine functions and end
    with ``present``, which persists the state before replying.
    """

    definition: WorkflowDefinition
    free_text_steps: frozenset[str] = frozenset()

    def __init__(self, ctx: FormContext) -> None:
        self.ctx = ctx

    @property
    def kind(self) -> str:
        return self.definition.kind

    @abc.abstractmethod
    async def start(self, subject_id: str, conversation_id: str) -> Outcome:
        """Begin a new session, replacing any existing one."""
        raise NotImplementedError

    @abc.abstractmethod
    async def handle(self, state: WorkflowState, action: Action) -> Outcome:
        """Apply ``action`` to ``state``."""
        raise NotImplementedError

    @abc.abstractmethod
    def render(self, state: WorkflowState) -> Prompt:
        """Text and buttons for the state's current step."""
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Helpers
    def payload(self, *parts: Any) -> str:
        return callback_payload(self.kind, *parts)

    def button(self, label: str, *parts: Any) -> Choice:
        return Choice(label=label, payload=self.payload(*parts))

    def cancel_button(self, label: str = "Cancel") -> Choice:
        return self.button(label, "cancel")

    def go(self, state: WorkflowState, step: str, **data: Any) -> WorkflowState:
        """Advance to ``step`` and merge ``data``; free-text steps start waiting."""
        if data:
            state = merge_data(state, data)
        waiting = step in self.free_text_steps
        return advance(state, step, self.definition, waiting_for_free_text=waiting, slot=step)

    async def present(
        self,
        state: WorkflowState,
        note: Optional[str] = None,
        ok: bool = True,
        error: Optional[str] = None,
        **data: Any,
    ) -> Outcome:
        """Persist ``state``, send the prompt for its step and report the outcome."""
        await self.ctx.sessions.save(state)
        text, choices = self.render(state)
        if note:
            text = f"{note}\n\n{text}"
        state = await self.reply(state, text, choices)
        if ok:
            return Outcome.success(text, step=state.step, **data)
        return Outcome.failure(error or "rejected", text, step=state.step, **data)

    async def reply(
        self, state: WorkflowState, text: str, choices: Sequence[Choice] = ()
    ) -> WorkflowState:
        if choices:
            result = await self.ctx.transport.send_choice(state.conversation_id, text, choices)
        else:
            result = await self.ctx.transport.send_text(state.conversation_id, text)
        if not result.ok:
            logger.error(f"Could not deliver {self.kind} prompt: {result.error}")
            return state
        if result.message_id is not None and result.message_id != state.last_message_id:
            state = state.model_copy(update={"last_message_id": result.message_id})
            await self.ctx.sessions.save(state)
        return state

    async def unexpected(self, state: WorkflowState) -> Outcome:
        return await self.present(
            state,
            note="That option is no longer available.",
            ok=False,
            error="unexpected_action",
        )
