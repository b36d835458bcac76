"""Closed set of user actions decoded from callback payloads.

Payloads look like ``<kind>:<verb>[:<arg>...]``, for example
``sunday_service:pick:worship_services_list:4``. They are parsed once, at the
edge, and handlers only ever see the typed variants below.
"""

from __future__ import annotations

import logging
from typing import Literal, Optional, Tuple, Union

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class Cancel(BaseModel):
    verb: Literal["cancel"] = "cancel"


class Confirm(BaseModel):
    verb: Literal["confirm"] = "confirm"


class ContinueEdit(BaseModel):
    verb: Literal["continue"] = "continue"


class BackToReview(BaseModel):
    verb: Literal["review"] = "review"


class EditField(BaseModel):
    verb: Literal["edit"] = "edit"
    field: str


class SetValue(BaseModel):
    verb: Literal["set"] = "set"
    field: str
    value: str


class Pick(BaseModel):
    verb: Literal["pick"] = "pick"
    list_name: str
    index: int


class Toggle(BaseModel):
    verb: Literal["toggle"] = "toggle"
    list_name: str
    index: int


class Done(BaseModel):
    verb: Literal["done"] = "done"
    field: str


class Page(BaseModel):
    verb: Literal["page"] = "page"
    field: str
    page: int


class Custom(BaseModel):
    verb: Literal["custom"] = "custom"
    field: str


class SwitchStream(BaseModel):
    verb: Literal["switch"] = "switch"
    stream: str


class FreeText(BaseModel):
    verb: Literal["text"] = "text"
    text: str


class Unrecognized(BaseModel):
    verb: Literal["unknown"] = "unknown"
    raw: str


Action = Union[
    Cancel,
    Confirm,
    ContinueEdit,
    BackToReview,
    EditField,
    SetValue,
    Pick,
    Toggle,
    Done,
    Page,
    Custom,
    SwitchStream,
    FreeText,
    Unrecognized,
]

_NO_ARGS = {
    "cancel": Cancel,
    "confirm": Confirm,
    "continue": ContinueEdit,
    "review": BackToReview,
}


def _build(verb: str, args: list[str]) -> Optional[Action]:
    if verb in _NO_ARGS:
        return _NO_ARGS[verb]() if not args else None
    if verb in ("edit", "done", "custom") and len(args) == 1:
        model = {"edit": EditField, "done": Done, "custom": Custom}[verb]
        return model(field=args[0])
    if verb == "set" and len(args) >= 2:
        return SetValue(field=args[0], value=":".join(args[1:]))
    if verb in ("pick", "toggle") and len(args) == 2:
        model = Pick if verb == "pick" else Toggle
        return model(list_name=args[0], index=int(args[1]))
    if verb == "page" and len(args) == 2:
        return Page(field=args[0], page=int(args[1]))
    if verb == "switch" and len(args) == 1:
        return SwitchStream(stream=args[0])
    return None


def parse_action(payload: str) -> Tuple[Optional[str], Action]:
    """Split ``payload`` into its workflow kind and a typed action.

    Anything malformed becomes ``Unrecognized``; the kind is ``None`` when
    the payload has no ``kind:verb`` prefix at all.
    """
    parts = payload.split(":")
    if len(parts) < 2 or not parts[0]:
        return None, Unrecognized(raw=payload)
    kind, verb, args = parts[0], parts[1], parts[2:]
    try:
        action = _build(verb, args)
    except ValueError:
        action = None
    if action is None:
        logger.debug(f"Unrecognized callback payload {payload!r}")
        return kind, Unrecognized(raw=payload)
    return kind, action
