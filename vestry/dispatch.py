"""Route inbound chat events to the form that owns them."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import AsyncIterator, Dict, Optional

from .cache import LeaderDirectory
from .civil_time import Clock, SystemClock
from .config import VestryConfig
from .errors import IllegalTransitionError, SessionNotFoundError, VestryError
from .records import RecordSource
from .results import Outcome
from .store import StateStore
from .transports import ChatTransport
from .workflow.actions import Action, Cancel, FreeText, Unrecognized, parse_action
from .workflow.forms import FORMS, FormContext, FormHandler
from .workflow.session import SessionStore

logger = logging.getLogger(__name__)

RESTART_PROMPT = "This form is no longer active. Start it again from the menu."
FAILURE_PROMPT = "Something went wrong. Your answers are kept, please try again."


class WorkflowDispatcher:
    """Service turning button presses and text messages into form transitions.

    Each event loads the subject's session, applies one transition and
    persists the result before replying. Events for the same subject are
    processed one at a time within this process.
    """

    def __init__(
        self,
        store: StateStore,
        transport: ChatTransport,
        records: RecordSource,
        config: Optional[VestryConfig] = None,
        clock: Optional[Clock] = None,
        leaders: Optional[LeaderDirectory] = None,
    ) -> None:
        self.config = config or VestryConfig()
        self.transport = transport
        self.sessions = SessionStore(store)
        clock = clock or SystemClock()
        leaders = leaders or LeaderDirectory(
            records,
            ttl=timedelta(seconds=self.config.dispatch.leaders_cache_ttl_seconds),
            clock=clock,
        )
        self.context = FormContext(self.sessions, transport, records, clock, self.config, leaders)
        self.forms: Dict[str, FormHandler] = {}
        for form_cls in FORMS:
            form = form_cls(self.context)
            self.forms[form.kind] = form
        self._locks: Dict[str, asyncio.Lock] = {}
        self._waiters: Dict[str, int] = {}

    # ------------------------------------------------------------------
    @asynccontextmanager
    async def _serialized(self, subject_id: str) -> AsyncIterator[None]:
        """Hold the subject's lock; it is dropped once nobody waits for it."""
        if not self.config.dispatch.serialize_per_subject:
            yield
            return
        lock = self._locks.setdefault(subject_id, asyncio.Lock())
        self._waiters[subject_id] = self._waiters.get(subject_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[subject_id] -= 1
            if not self._waiters[subject_id]:
                del self._waiters[subject_id]
                del self._locks[subject_id]

    async def start(
        self, kind: str, subject_id: str | int, conversation_id: str | int
    ) -> Outcome:
        """Begin ``kind`` for the subject, replacing any unfinished session."""
        form = self.forms.get(kind)
        if form is None:
            return Outcome.failure("unknown_workflow", f"Unknown form {kind}")
        subject_id, conversation_id = str(subject_id), str(conversation_id)
        async with self._serialized(subject_id):
            return await self._guard(kind, subject_id, conversation_id, form.start(subject_id, conversation_id))

    async def handle_interaction(
        self,
        subject_id: str | int,
        conversation_id: str | int,
        payload: Optional[str] = None,
        free_text: Optional[str] = None,
        interaction_id: Optional[str] = None,
    ) -> Outcome:
        """Apply a button press (``payload``) or a text message (``free_text``)."""
        subject_id, conversation_id = str(subject_id), str(conversation_id)
        if interaction_id:
            try:
                await self.transport.acknowledge_interaction(interaction_id)
            except Exception:
                logger.exception(f"Could not acknowledge interaction {interaction_id}")

        async with self._serialized(subject_id):
            if payload is not None:
                kind, action = parse_action(payload)
                if kind not in self.forms or isinstance(action, Unrecognized):
                    logger.warning(f"Ignoring unrecognized payload {payload!r} from {subject_id}")
                    return Outcome.failure("unrecognized_action")
                return await self._guard(
                    kind, subject_id, conversation_id, self._apply(kind, subject_id, action)
                )
            if free_text is not None:
                return await self._on_free_text(subject_id, conversation_id, free_text)
        return Outcome.failure("empty_interaction")

    async def cancel(self, kind: str, subject_id: str | int) -> Outcome:
        await self.sessions.cancel(kind, subject_id)
        return Outcome.success("Cancelled.")

    # ------------------------------------------------------------------
    async def _apply(self, kind: str, subject_id: str, action: Action) -> Outcome:
        if isinstance(action, Cancel):
            state = await self.sessions.find(kind, subject_id)
            await self.sessions.cancel(kind, subject_id)
            if state is not None:
                await self.transport.send_text(state.conversation_id, "Cancelled.")
            return Outcome.success("Cancelled.")
        state = await self.sessions.load(kind, subject_id)
        return await self.forms[kind].handle(state, action)

    async def _on_free_text(self, subject_id: str, conversation_id: str, text: str) -> Outcome:
        for kind, form in self.forms.items():
            try:
                state = await self.sessions.find(kind, subject_id)
            except Exception:
                logger.exception(f"Could not load {kind} session of {subject_id}")
                return Outcome.failure("internal_error", FAILURE_PROMPT)
            if state is not None and state.waiting_for_free_text:
                return await self._guard(
                    kind, subject_id, conversation_id, form.handle(state, FreeText(text=text))
                )
        logger.debug(f"No form is waiting for text from {subject_id}")
        return Outcome.success(None, ignored=True)

    async def _guard(self, kind: str, subject_id: str, conversation_id: str, operation) -> Outcome:
        try:
            return await operation
        except SessionNotFoundError:
            logger.info(f"No {kind} session for {subject_id}")
            await self._notify(conversation_id, RESTART_PROMPT)
            return Outcome.failure("session_not_found", RESTART_PROMPT)
        except IllegalTransitionError:
            logger.exception(f"{kind} handler attempted an undeclared transition")
            await self._notify(conversation_id, FAILURE_PROMPT)
            return Outcome.failure("illegal_transition", FAILURE_PROMPT)
        except VestryError as exc:
            logger.error(f"{kind} interaction of {subject_id} failed: {exc}")
            await self._notify(conversation_id, FAILURE_PROMPT)
            return Outcome.failure(type(exc).__name__, FAILURE_PROMPT)
        except Exception:
            logger.exception(f"{kind} interaction of {subject_id} failed")
            await self._notify(conversation_id, FAILURE_PROMPT)
            return Outcome.failure("internal_error", FAILURE_PROMPT)

    async def _notify(self, conversation_id: str, text: str) -> None:
        try:
            result = await self.transport.send_text(conversation_id, text)
        except Exception:
            logger.exception(f"Could not notify {conversation_id}")
            return
        if not result.ok:
            logger.error(f"Could not notify {conversation_id}: {result.error}")
