"""Static configuration for spacewatch.

All user-editable settings (watch list, stage actions, notifications,
logging) live in a single JSON file for quick edits without touching Python.
Secrets (bearer token, bot token, Telegram API credentials) stay in ``.env``.
"""

import json
import os

from dotenv import load_dotenv

from core.config import build_event_actions, build_thresholds, build_watch_config
from core.errors import ConfigError

load_dotenv()

# config.json is read from the working directory unless SPACEWATCH_CONFIG
# points elsewhere; relative paths inside it resolve against its directory.
CONFIG_PATH = os.path.abspath(os.getenv("SPACEWATCH_CONFIG", "config.json"))
PROJECT_ROOT = os.path.dirname(CONFIG_PATH)


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        try:
            config = json.load(handle)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"invalid config: {CONFIG_PATH}: {exc}") from exc
    if not isinstance(config, dict):
        raise ConfigError(f"invalid config: {CONFIG_PATH} must hold an object")
    return config


def _resolve_path(path: str) -> str:
    if os.path.isabs(path):
        return path
    return os.path.join(PROJECT_ROOT, path)


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

# Watch list and base poll interval (the floor for the adaptive interval).
WATCH = build_watch_config(_CONFIG.get("watch", {}))

# Per-stage actions and the switches the status resolver needs. A stage that
# is absent or disabled resolves but sends nothing.
_events = _CONFIG.get("events", {})
EVENT_ACTIONS = build_event_actions(_events)
THRESHOLDS = build_thresholds(_events)

# Notification method switches delivery adapters without changing core logic.
_notifications = _CONFIG.get("notifications", {})
NOTIFICATION_METHOD = _notifications.get("notification_method", "bot")
# Bot chat id is only required when notification_method=bot.
BOT_CHAT_ID = _notifications.get("bot_chat_id")

# Where to store the SQLite dedup database.
DB_PATH = _resolve_path(_CONFIG.get("storage", {}).get("db_path", "spacewatch.db"))

HTTP_TIMEOUT_SECONDS = float(_CONFIG.get("http", {}).get("timeout_seconds", 30))

# Grace period for fire-and-forget commands still running at shutdown.
COMMAND_SHUTDOWN_GRACE_SECONDS = float(_CONFIG.get("commands", {}).get("shutdown_grace_seconds", 10))

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
