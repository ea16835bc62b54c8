from __future__ import annotations

import asyncio
import logging

import pytest

import app
from app import _collect_redaction_values, _RedactingFormatter, _resolve_creator_ids
from core.config import WatchConfig
from core.errors import ConfigError, FetchError
from core.models import Creator


class FakeTwitter:
    def __init__(self, users: list[Creator] = (), following: list[Creator] = ()) -> None:
        self._users = list(users)
        self._following = list(following)
        self.following_of: list[str] = []

    async def lookup_users(self, usernames: list[str]) -> list[Creator]:
        wanted = {name.lower() for name in usernames}
        return [user for user in self._users if user.username.lower() in wanted]

    async def get_following(self, user_id: str) -> list[Creator]:
        self.following_of.append(user_id)
        return self._following


def test_resolve_creator_ids_merges_and_dedupes() -> None:
    twitter = FakeTwitter(
        users=[Creator(id="2", username="Host"), Creator(id="1", username="guest")],
        following=[Creator(id="3"), Creator(id="2")],
    )
    watch = WatchConfig(interval_seconds=60, creator_ids=["1"], usernames=["host", "guest"], following_of="99")

    assert asyncio.run(_resolve_creator_ids(twitter, watch)) == ["1", "2", "3"]
    assert twitter.following_of == ["99"]


def test_resolve_creator_ids_warns_on_unknown_usernames(caplog) -> None:
    twitter = FakeTwitter(users=[Creator(id="2", username="host")])
    watch = WatchConfig(interval_seconds=60, usernames=["host", "ghost"])

    with caplog.at_level(logging.WARNING):
        assert asyncio.run(_resolve_creator_ids(twitter, watch)) == ["2"]
    assert "ghost" in caplog.text


def test_resolve_creator_ids_rejects_empty_watch_list() -> None:
    watch = WatchConfig(interval_seconds=60, usernames=["ghost"])

    with pytest.raises(ConfigError):
        asyncio.run(_resolve_creator_ids(FakeTwitter(), watch))


def test_resolve_creator_ids_rejects_more_than_100_accounts() -> None:
    following = [Creator(id=str(index)) for index in range(1, 101)]
    watch = WatchConfig(interval_seconds=60, creator_ids=["1000"], following_of="99")

    with pytest.raises(ConfigError):
        asyncio.run(_resolve_creator_ids(FakeTwitter(following=following), watch))


def test_resolve_creator_ids_accepts_exactly_100_accounts() -> None:
    following = [Creator(id=str(index)) for index in range(1, 101)]
    watch = WatchConfig(interval_seconds=60, following_of="99")

    assert len(asyncio.run(_resolve_creator_ids(FakeTwitter(following=following), watch))) == 100


def _format(formatter: logging.Formatter, message: str, *args) -> str:
    record = logging.LogRecord("spacewatch", logging.INFO, __file__, 1, message, args, None)
    return formatter.format(record)


def test_redacting_formatter_masks_tokens() -> None:
    formatter = _RedactingFormatter(["bearer-secret", "123:bot-secret", ""], fmt="%(message)s")

    line = _format(
        formatter,
        "GET with %s then POST https://api.telegram.org/bot%s/sendMessage",
        "bearer-secret",
        "123:bot-secret",
    )

    assert "bearer-secret" not in line
    assert "bot-secret" not in line
    assert line == "GET with *** then POST https://api.telegram.org/bot***/sendMessage"


def test_collect_redaction_values_reads_named_env(monkeypatch) -> None:
    monkeypatch.setenv("TWITTER_BEARER_TOKEN", "bearer-secret")
    monkeypatch.setenv("BOT_API", "123:bot-secret")
    monkeypatch.delenv("UNSET_SECRET", raising=False)
    config = {"redact": {"enabled": True, "patterns": ["TWITTER_BEARER_TOKEN", "BOT_API", "UNSET_SECRET"]}}

    assert _collect_redaction_values(config) == ["123:bot-secret", "bearer-secret"]


def test_collect_redaction_values_disabled(monkeypatch) -> None:
    monkeypatch.setenv("BOT_API", "123:bot-secret")

    assert _collect_redaction_values({"redact": {"enabled": False, "patterns": ["BOT_API"]}}) == []


@pytest.mark.parametrize(
    "error",
    [FetchError("GET users/by returned status 401"), RuntimeError("Missing API_ID or API_HASH in environment")],
)
def test_run_reports_startup_failure_and_exits(monkeypatch, caplog, error) -> None:
    async def failing_watch() -> None:
        raise error

    monkeypatch.setattr(app, "_print_banner", lambda: None)
    monkeypatch.setattr(app, "_configure_logging", lambda config: None)
    monkeypatch.setattr(app, "_watch", failing_watch)

    with caplog.at_level(logging.ERROR), pytest.raises(SystemExit) as excinfo:
        app._run()
    assert excinfo.value.code == 1
    assert f"Startup failed: {error}" in caplog.text
