"""Result envelope returned at the dispatcher and scheduler boundaries."""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class Outcome(BaseModel):
    ok: bool
    message: Optional[str] = None
    error: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def success(cls, message: Optional[str] = None, **data: Any) -> "Outcome":
        return cls(ok=True, message=message, data=data)

    @classmethod
    def failure(cls, error: str, message: Optional[str] = None, **data: Any) -> "Outcome":
        return cls(ok=False, error=error, message=message, data=data)
