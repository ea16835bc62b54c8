"""Telethon client factory for the Saved Messages notification method.

The watcher only uses this client to send into the logged-in account's own
"Saved Messages" chat; ``spacewatch login`` uses it to create the session
file. The Bot API method never touches Telethon.
"""

from __future__ import annotations

import logging
import os

from telethon import TelegramClient

LOGGER = logging.getLogger(__name__)


def build_client() -> TelegramClient:
    """Create the Saved Messages client from API_ID, API_HASH and SESSION_NAME.

    Raises RuntimeError when the Telegram API credentials are missing.
    """

    api_id = os.getenv("API_ID")
    api_hash = os.getenv("API_HASH")
    session_name = os.getenv("SESSION_NAME", "spacewatch")

    if not api_id or not api_hash:
        raise RuntimeError("Missing API_ID or API_HASH in environment")

    LOGGER.info("Opening Telegram session %r for Saved Messages", session_name)
    return TelegramClient(session_name, int(api_id), api_hash)
