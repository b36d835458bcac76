"""Resumable multi-step conversations."""

from .actions import Action, parse_action
from .codec import callback_payload, decode_choice, encode_choice, index_choices
from .machine import (
    SplitSubRecord,
    WorkflowDefinition,
    WorkflowState,
    advance,
    begin,
    merge_data,
    split_and_switch_stream,
    toggle_membership,
    validate_before_commit,
)
from .session import SessionStore

__all__ = [
    "Action",
    "SessionStore",
    "SplitSubRecord",
    "WorkflowDefinition",
    "WorkflowState",
    "advance",
    "begin",
    "callback_payload",
    "decode_choice",
    "encode_choice",
    "index_choices",
    "merge_data",
    "parse_action",
    "split_and_switch_stream",
    "toggle_membership",
    "validate_before_commit",
]
