"""JSON encoding of stored payloads with date revival."""

from __future__ import annotations

import json
import logging
from datetime import date, datetime
from typing import Any

from ..constants import DATE_FIELDS

logger = logging.getLogger(__name__)


def _default(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def encode_payload(payload: dict[str, Any]) -> str:
    return json.dumps(payload, default=_default, ensure_ascii=False)


def _revive(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    try:
        if len(value) == 10:
            return date.fromisoformat(value)
        return datetime.fromisoformat(value)
    except ValueError:
        logger.debug(f"Leaving non-ISO date field as text: {value!r}")
        return value


def decode_payload(raw: str | bytes) -> dict[str, Any]:
    """Parse a stored payload and revive the known date fields of ``data``.

    Only the names in ``DATE_FIELDS`` are revived; other ISO-looking strings
    stay strings.
    """
    payload = json.loads(raw)
    data = payload.get("data") if isinstance(payload, dict) else None
    if isinstance(data, dict):
        for key in DATE_FIELDS:
            if key in data:
                data[key] = _revive(data[key])
    return payload
