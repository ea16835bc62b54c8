"""Telegram Bot API delivery adapter.

Uses the Bot API for delivery so notifications can be routed via a bot chat.
"""

from __future__ import annotations

from typing import Optional

import httpx

from core.errors import DeliveryError


class TelegramBotSender:
    """MessageSender that posts HTML messages through the Telegram Bot API."""

    format_mode = "html"

    def __init__(self, client: httpx.AsyncClient, bot_token: str, chat_id: str) -> None:
        self._client = client
        self._bot_token = bot_token
        self._chat_id = chat_id

    def _endpoint(self) -> str:
        # The Bot API endpoint is deterministic and derived from the token.
        return f"https://api.telegram.org/bot{self._bot_token}/sendMessage"

    async def send(self, message: str) -> Optional[int]:
        """Send the rendered notification and return the Telegram message id."""

        payload = {
            "chat_id": self._chat_id,
            "text": message,
            "parse_mode": "HTML",
            "disable_web_page_preview": False,
        }
        try:
            resp = await self._client.post(self._endpoint(), json=payload)
        except httpx.HTTPError as exc:
            raise DeliveryError(f"Bot API request failed: {type(exc).__name__}") from exc
        if resp.status_code != 200:
            raise DeliveryError(f"Bot API error {resp.status_code}: {resp.text}")
        try:
            body = resp.json()
        except ValueError:
            return None
        result = body.get("result") if isinstance(body, dict) else None
        if isinstance(result, dict):
            return result.get("message_id")
        return None
