"""Application entry point for the spacewatch watcher."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
from logging.handlers import RotatingFileHandler
from typing import Optional

import httpx
from art import tprint

import settings
from adapters.command_runner import SubprocessCommandRunner
from adapters.sqlite_storage import SQLiteStorage
from adapters.stage_notifier import StageNotifier
from adapters.telegram_bot_notifier import TelegramBotSender
from adapters.telegram_notifier import TelegramSavedMessagesSender
from adapters.twitter_client import TwitterClient
from client import build_client
from core.config import MAX_CREATOR_IDS, WatchConfig
from core.dispatcher import SpaceDispatcher
from core.errors import ConfigError, WatchError
from core.scheduler import PollScheduler
from get_session import authorize

NAME = "SPACEWATCH"
FONT = "tarty-1"

LOGGER = logging.getLogger(__name__)


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", False):
        return []
    values = []
    for name in redact_cfg.get("patterns", []):
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging(config: dict) -> None:
    if not config.get("enabled", True):
        return

    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    secrets = _collect_redaction_values(config)
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/spacewatch.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)
    # httpx logs every request URL at INFO, which would leak the bot token.
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))


async def _resolve_creator_ids(twitter: TwitterClient, watch: WatchConfig) -> list[str]:
    """Merge configured ids, looked-up usernames and followings into one list."""

    creator_ids: list[str] = list(watch.creator_ids)
    if watch.usernames:
        users = await twitter.lookup_users(watch.usernames)
        found = {user.username.lower() for user in users}
        missing = [name for name in watch.usernames if name.lower() not in found]
        if missing:
            LOGGER.warning("Unknown usernames ignored: %s", ", ".join(missing))
        creator_ids.extend(user.id for user in users)
    if watch.following_of is not None:
        following = await twitter.get_following(watch.following_of)
        creator_ids.extend(user.id for user in following)

    unique_ids = list(dict.fromkeys(creator_ids))
    if not unique_ids:
        raise ConfigError("watch list resolved to no accounts")
    if len(unique_ids) > MAX_CREATOR_IDS:
        raise ConfigError(f"watch list has {len(unique_ids)} accounts, at most {MAX_CREATOR_IDS} are supported")
    return unique_ids


async def _build_sender(http_client: httpx.AsyncClient):
    """Select the delivery adapter from configuration.

    Returns the sender and the Telethon client to disconnect at shutdown (None
    for the Bot API method).
    """

    if settings.NOTIFICATION_METHOD == "bot":
        bot_token = os.getenv("BOT_API")
        if not bot_token:
            raise ConfigError("BOT_API is required when notification_method=bot")
        if not settings.BOT_CHAT_ID:
            raise ConfigError("notifications.bot_chat_id is required for bot notifications")
        return TelegramBotSender(http_client, bot_token, str(settings.BOT_CHAT_ID)), None

    if settings.NOTIFICATION_METHOD == "saved_messages":
        client = build_client()
        await client.connect()
        if not await client.is_user_authorized():
            await client.disconnect()
            raise ConfigError("Telegram session is not authorized, run `spacewatch login` first")
        return TelegramSavedMessagesSender(client), client

    raise ConfigError("notification_method must be 'bot' or 'saved_messages'")


def _install_stop_handlers(stop_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform; Ctrl+C still raises KeyboardInterrupt.
            pass


async def _watch() -> None:
    bearer_token = os.getenv("TWITTER_BEARER_TOKEN")
    if not bearer_token:
        raise ConfigError("TWITTER_BEARER_TOKEN is required")

    storage = SQLiteStorage(settings.DB_PATH)
    storage.init_db()
    LOGGER.info("Dedup store ready at %s", settings.DB_PATH)

    stop_event = asyncio.Event()
    _install_stop_handlers(stop_event)

    async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS) as http_client:
        twitter = TwitterClient(http_client, bearer_token)
        creator_ids = await _resolve_creator_ids(twitter, settings.WATCH)
        LOGGER.info("Target users: %s", ", ".join(creator_ids))

        sender, telegram_client = await _build_sender(http_client)
        LOGGER.info("Selected notification method - %s", settings.NOTIFICATION_METHOD)

        command_runner = SubprocessCommandRunner()
        notifier = StageNotifier(settings.EVENT_ACTIONS, sender, command_runner)
        dispatcher = SpaceDispatcher(storage, notifier, settings.THRESHOLDS)
        scheduler = PollScheduler(
            source=twitter,
            dispatcher=dispatcher,
            creator_ids=creator_ids,
            base_interval=settings.WATCH.interval_seconds,
        )

        try:
            await scheduler.run(stop_event)
        finally:
            await command_runner.drain(settings.COMMAND_SHUTDOWN_GRACE_SECONDS)
            if telegram_client is not None:
                await telegram_client.disconnect()


def _run() -> None:
    _print_banner()
    _configure_logging(settings.LOGGING or {})
    LOGGER.info("Starting spacewatch")
    try:
        asyncio.run(_watch())
    except (WatchError, RuntimeError) as exc:
        LOGGER.error("Startup failed: %s", exc)
        raise SystemExit(1) from exc
    except KeyboardInterrupt:
        LOGGER.info("Interrupted")


def _login() -> None:
    _print_banner()

    async def _run_login() -> None:
        client = build_client()
        await client.connect()
        try:
            await authorize(client)
            me = await client.get_me()
            print(f"Logged in as: {me.first_name}")
        finally:
            await client.disconnect()

    asyncio.run(_run_login())


def _history(limit: int) -> None:
    storage = SQLiteStorage(settings.DB_PATH)
    storage.init_db()
    records = storage.list_records(limit)
    if not records:
        print("No notified spaces yet.")
        return
    for record in records:
        when = record.notified_at.strftime("%Y-%m-%d %H:%M:%S") if record.notified_at else "-"
        print(f"{when} | {record.status.name:<15} | @{record.screen_name} | {record.space_id} | {record.title}")


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="spacewatch")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the watcher")
    subparsers.add_parser("login", help="Log in to Telegram for Saved Messages notifications")
    history_parser = subparsers.add_parser("history", help="Show the latest notified spaces")
    history_parser.add_argument("--limit", type=int, default=20)

    args = parser.parse_args(argv)
    if args.command == "login":
        _login()
        return
    if args.command == "history":
        _history(args.limit)
        return
    _run()


if __name__ == "__main__":
    main()
