"""Telegram delivery adapter for Saved Messages.

Sends the rendered Markdown notification to the logged-in account's Saved
Messages through Telethon.
"""

from __future__ import annotations

from typing import Optional

from telethon import errors

from core.errors import DeliveryError


class TelegramSavedMessagesSender:
    """MessageSender that writes to the user's Saved Messages."""

    format_mode = "markdown"

    def __init__(self, client) -> None:
        self._client = client

    async def send(self, message: str) -> Optional[int]:
        """Send the notification to Saved Messages and return its id."""

        try:
            sent = await self._client.send_message("me", message, parse_mode="Markdown")
        except (errors.RPCError, ConnectionError, OSError) as exc:
            raise DeliveryError(f"Saved Messages delivery failed: {exc}") from exc
        return getattr(sent, "id", None)
