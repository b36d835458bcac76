"""Compact callback payloads for choices drawn from long option lists.

Option labels can be far longer than the 64 bytes a callback payload may
carry, so a choice travels as an index into a list cached in the session's
``data``. Decoding always re-reads that list from the current state.
"""

from __future__ import annotations

from typing import Any, List, Sequence

from ..constants import MAX_CALLBACK_BYTES
from ..errors import CallbackTooLongError, ChoiceDecodeError
from ..transports import Choice
from .machine import WorkflowState


def callback_payload(*parts: Any) -> str:
    payload = ":".join(str(p) for p in parts)
    if len(payload.encode("utf-8")) > MAX_CALLBACK_BYTES:
        raise CallbackTooLongError(
            f"Callback payload is {len(payload.encode('utf-8'))} bytes: {payload!r}"
        )
    return payload


def encode_choice(kind: str, verb: str, list_name: str, index: int) -> str:
    return callback_payload(kind, verb, list_name, index)


def index_choices(
    kind: str,
    list_name: str,
    options: Sequence[str],
    verb: str = "pick",
    labels: Sequence[str] | None = None,
) -> List[Choice]:
    """One ``Choice`` per option, each carrying only its index."""
    labels = labels or options
    return [
        Choice(label=labels[i], payload=encode_choice(kind, verb, list_name, i))
        for i in range(len(options))
    ]


def decode_index(options: Sequence[str], list_name: str, index: int | None) -> str:
    if not options or index is None or index < 0 or index >= len(options):
        raise ChoiceDecodeError(list_name, index, len(options))
    return options[index]


def decode_choice(state: WorkflowState, list_name: str, index: int | None) -> str:
    """Resolve ``index`` against the list cached in ``state.data[list_name]``."""
    options = state.data.get(list_name) or []
    if not isinstance(options, list):
        raise ChoiceDecodeError(list_name, index, 0)
    return decode_index(options, list_name, index)
