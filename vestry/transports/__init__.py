"""Transport factory and initialization."""

from __future__ import annotations

import os
from typing import Optional

from ..config import VestryConfig, load_config
from .base import ChatTransport, Choice, SendResult
from .inmemory import InMemoryTransport


def get_transport(
    backend: Optional[str] = None, config: Optional[VestryConfig] = None
) -> ChatTransport:
    """Factory function to get the configured transport."""

    config = config or load_config()
    backend = (
        backend
        or os.getenv("VESTRY_TRANSPORT")
        or config.transport.backend
    ).lower()

    if backend == "inmemory":
        return InMemoryTransport()
    elif backend == "telegram":
        from .telegram import TelegramTransport

        tg = config.telegram
        return TelegramTransport(
            token=tg.bot_token or "",
            api_base=tg.api_base,
            timeout=tg.timeout,
            max_retries=tg.max_retries,
        )
    else:
        raise ValueError(f"Unsupported transport backend: {backend}")


__all__ = ["ChatTransport", "Choice", "SendResult", "InMemoryTransport", "get_transport"]
