"""Pure transitions over persisted conversation state.

Nothing here touches storage or the chat transport: every operation takes a
``WorkflowState`` and returns a new one, and the session layer persists it.
"""

from __future__ import annotations

import copy
from typing import Any, Callable, Dict, FrozenSet, Iterable, Mapping, Optional, Sequence

from pydantic import BaseModel, Field, field_validator

from ..constants import OTHER, SCHEMA_VERSION
from ..errors import IllegalTransitionError, ValidationFailure

# Snapshot of one stream's fields while the other stream is being edited.
SplitSubRecord = Dict[str, Any]


class WorkflowState(BaseModel):
    """One subject's progress through one workflow."""

    subject_id: str
    conversation_id: str
    kind: str
    step: str
    data: Dict[str, Any] = Field(default_factory=dict)
    waiting_for_free_text: bool = False
    last_message_id: Optional[int] = None
    pending_freeform_slot: Optional[str] = None
    streams: Dict[str, SplitSubRecord] = Field(default_factory=dict)
    schema_version: int = SCHEMA_VERSION

    @field_validator("subject_id", "conversation_id", mode="before")
    @classmethod
    def _as_text(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump()


Validator = Callable[[WorkflowState], Dict[str, str]]


class WorkflowDefinition:
    """Step graph of one workflow kind.

    ``transitions`` maps each step to the steps it may move to. Staying on
    the current step is always allowed.
    """

    def __init__(
        self,
        kind: str,
        start: str,
        transitions: Mapping[str, Iterable[str]],
        stream_fields: Sequence[str] = (),
        validator: Optional[Validator] = None,
    ) -> None:
        self.kind = kind
        self.start = start
        self.transitions: Dict[str, FrozenSet[str]] = {
            step: frozenset(targets) for step, targets in transitions.items()
        }
        self.stream_fields = tuple(stream_fields)
        self._validator = validator
        unknown = {t for targets in self.transitions.values() for t in targets} - self.steps
        if start not in self.transitions or unknown:
            raise ValueError(f"{kind}: undeclared steps {sorted(unknown | {start} - self.steps)}")

    @property
    def steps(self) -> FrozenSet[str]:
        return frozenset(self.transitions)

    def allows(self, current: str, target: str) -> bool:
        return current == target or target in self.transitions.get(current, frozenset())

    def validate(self, state: WorkflowState) -> Dict[str, str]:
        return self._validator(state) if self._validator else {}


def _copy(state: WorkflowState, **update: Any) -> WorkflowState:
    return state.model_copy(deep=True, update=update)


def begin(
    definition: WorkflowDefinition,
    subject_id: str | int,
    conversation_id: str | int,
    data: Optional[Dict[str, Any]] = None,
) -> WorkflowState:
    return WorkflowState(
        subject_id=subject_id,
        conversation_id=conversation_id,
        kind=definition.kind,
        step=definition.start,
        data=copy.deepcopy(data or {}),
    )


def advance(
    state: WorkflowState,
    next_step: str,
    definition: WorkflowDefinition,
    waiting_for_free_text: bool = False,
    slot: Optional[str] = None,
) -> WorkflowState:
    """Move to ``next_step``, raising ``IllegalTransitionError`` on an undeclared edge.

    Free-text waiting is reset unless the caller asks for it on the new step.
    """
    if not definition.allows(state.step, next_step):
        raise IllegalTransitionError(definition.kind, state.step, next_step)
    return _copy(
        state,
        step=next_step,
        waiting_for_free_text=waiting_for_free_text,
        pending_freeform_slot=slot if waiting_for_free_text else None,
    )


def merge_data(state: WorkflowState, partial: Mapping[str, Any]) -> WorkflowState:
    data = copy.deepcopy(state.data)
    data.update(copy.deepcopy(dict(partial)))
    return _copy(state, data=data)


def await_free_text(state: WorkflowState, slot: str) -> WorkflowState:
    return _copy(state, waiting_for_free_text=True, pending_freeform_slot=slot)


def clear_free_text(state: WorkflowState) -> WorkflowState:
    return _copy(state, waiting_for_free_text=False, pending_freeform_slot=None)


def toggle_membership(
    state: WorkflowState, field: str, value: str, other: str = OTHER
) -> WorkflowState:
    """Add ``value`` to the list in ``field`` or remove it if present.

    The ``other`` sentinel is never stored by a toggle; it switches the state
    to wait for free text that will fill ``field``.
    """
    if value == other:
        return await_free_text(state, field)
    current = list(state.data.get(field) or [])
    if value in current:
        current.remove(value)
    else:
        current.append(value)
    return merge_data(state, {field: current})


def split_and_switch_stream(
    state: WorkflowState,
    from_key: str,
    to_key: str,
    stream_fields: Sequence[str],
) -> WorkflowState:
    """Park the stream fields of ``from_key`` and bring up those of ``to_key``.

    If ``to_key`` has no snapshot its fields are cleared. Keys outside
    ``stream_fields`` are left alone.
    """
    data = copy.deepcopy(state.data)
    streams = copy.deepcopy(state.streams)

    streams[from_key] = {f: data[f] for f in stream_fields if f in data}
    for field in stream_fields:
        data.pop(field, None)
    restored = streams.pop(to_key, None)
    if restored:
        data.update(restored)
    return _copy(state, data=data, streams=streams)


def stream_values(
    state: WorkflowState, key: str, current_key: Optional[str], stream_fields: Sequence[str]
) -> SplitSubRecord:
    """Return the fields of stream ``key`` wherever they currently live."""
    if key == current_key:
        return {f: state.data[f] for f in stream_fields if f in state.data}
    return copy.deepcopy(state.streams.get(key, {}))


def validate_before_commit(state: WorkflowState, definition: WorkflowDefinition) -> None:
    errors = definition.validate(state)
    if errors:
        raise ValidationFailure(errors)
