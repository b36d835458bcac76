"""Exception types raised across vestry."""

from __future__ import annotations

from typing import Dict, Optional


class VestryError(Exception):
    """Base class for recoverable vestry errors."""


class StoreUnavailableError(VestryError):
    """The durable state store cannot be reached and fallback is disabled."""


class SessionNotFoundError(VestryError):
    def __init__(self, subject_id: str, kind: str) -> None:
        super().__init__(f"No active {kind} session for {subject_id}")
        self.subject_id = subject_id
        self.kind = kind


class ChoiceDecodeError(VestryError):
    """An index-coded choice no longer matches the cached option list."""

    def __init__(self, list_name: str, index: Optional[int], size: int) -> None:
        super().__init__(f"Choice {index!r} is not valid for {list_name} ({size} options)")
        self.list_name = list_name
        self.index = index
        self.size = size


class CallbackTooLongError(VestryError):
    pass


class ValidationFailure(VestryError):
    """Required fields are missing at confirm time."""

    def __init__(self, errors: Dict[str, str]) -> None:
        super().__init__("; ".join(f"{k}: {v}" for k, v in errors.items()))
        self.errors = errors


class IllegalTransitionError(RuntimeError):
    """A handler attempted to move along an edge its workflow does not declare."""

    def __init__(self, kind: str, current: str, target: str) -> None:
        super().__init__(f"{kind}: {current} -> {target} is not a declared transition")
        self.kind = kind
        self.current = current
        self.target = target
