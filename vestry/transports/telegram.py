"""Telegram Bot API transport."""

from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

import httpx

from ..utils.retry import schedule_retry
from .base import ChatTransport, Choice, SendResult

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = {429, 500, 502, 503, 504}


class TelegramTransport(ChatTransport):
    """Deliver messages through the Telegram Bot API over ``httpx``."""

    def __init__(
        self,
        token: str,
        api_base: str = "https://api.telegram.org",
        timeout: float = 10.0,
        max_retries: int = 3,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not token:
            raise ValueError("Telegram bot token is required")
        self.token = token
        self.api_base = api_base.rstrip("/")
        self.max_retries = max_retries
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def disconnect(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    async def _call(self, method: str, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.api_base}/bot{self.token}/{method}"
        attempt = 0
        while True:
            try:
                response = await self._client.post(url, json=payload)
            except httpx.TransportError as exc:
                if attempt >= self.max_retries:
                    logger.error(f"Telegram {method} failed after {attempt + 1} attempts: {exc}")
                    return {"ok": False, "description": str(exc)}
                logger.warning(f"Telegram {method} transport error, retrying: {exc}")
                await schedule_retry(attempt)
                attempt += 1
                continue

            if response.status_code in RETRYABLE_STATUS and attempt < self.max_retries:
                retry_after = None
                try:
                    retry_after = response.json().get("parameters", {}).get("retry_after")
                except ValueError:
                    pass
                logger.warning(
                    f"Telegram {method} returned {response.status_code}, retrying"
                )
                await schedule_retry(attempt, retry_after)
                attempt += 1
                continue

            try:
                return response.json()
            except ValueError:
                return {"ok": False, "description": f"HTTP {response.status_code}"}

    @staticmethod
    def _result(data: dict[str, Any]) -> SendResult:
        if not data.get("ok"):
            return SendResult(ok=False, error=data.get("description", "unknown error"))
        message_id = (data.get("result") or {}).get("message_id")
        return SendResult(ok=True, message_id=message_id)

    # ------------------------------------------------------------------
    async def send_text(
        self, conversation_id: str | int, text: str, thread_id: Optional[int] = None
    ) -> SendResult:
        payload: dict[str, Any] = {"chat_id": conversation_id, "text": text, "parse_mode": "HTML"}
        if thread_id is not None:
            payload["message_thread_id"] = thread_id
        return self._result(await self._call("sendMessage", payload))

    async def send_choice(
        self,
        conversation_id: str | int,
        text: str,
        choices: Sequence[Choice],
        poll: bool = False,
        thread_id: Optional[int] = None,
    ) -> SendResult:
        if poll:
            payload: dict[str, Any] = {
                "chat_id": conversation_id,
                "question": text,
                "options": [c.label for c in choices],
                "is_anonymous": False,
            }
            method = "sendPoll"
        else:
            payload = {
                "chat_id": conversation_id,
                "text": text,
                "parse_mode": "HTML",
                "reply_markup": {
                    "inline_keyboard": [
                        [{"text": c.label, "callback_data": c.payload}] for c in choices
                    ]
                },
            }
            method = "sendMessage"
        if thread_id is not None:
            payload["message_thread_id"] = thread_id
        return self._result(await self._call(method, payload))

    async def acknowledge_interaction(
        self, interaction_id: str, text: Optional[str] = None, alert: bool = False
    ) -> None:
        payload: dict[str, Any] = {"callback_query_id": interaction_id, "show_alert": alert}
        if text:
            payload["text"] = text
        data = await self._call("answerCallbackQuery", payload)
        if not data.get("ok"):
            logger.warning(f"answerCallbackQuery failed: {data.get('description')}")
