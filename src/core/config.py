"""Core configuration dataclasses and builders.

File loading stays outside the core (see ``settings``), but the builders here
turn the raw ``config.json`` sections into the typed shapes the core expects
and reject anything the watcher could not run with.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Optional

from core.errors import ConfigError
from core.models import NotificationStatus
from core.status import StatusThresholds

# Config section name for every stage that can carry an action.
EVENT_KEYS: dict[NotificationStatus, str] = {
    NotificationStatus.SCHEDULE: "schedule",
    NotificationStatus.SCHEDULE_REMIND: "schedule_remind",
    NotificationStatus.START: "start",
}

# Single request limit of the spaces/by/creator_ids endpoint.
MAX_CREATOR_IDS = 100


@dataclass(frozen=True)
class CommandConfig:
    """Side-effect command launched after a notification."""

    name: str
    args: list[str]
    working_directory: str
    capture_stderr: bool = False


@dataclass(frozen=True)
class EventAction:
    """What to do when a Space reaches one stage."""

    status: NotificationStatus
    message: Optional[str] = None
    command: Optional[CommandConfig] = None


@dataclass(frozen=True)
class WatchConfig:
    """Which accounts to watch and how often to poll."""

    interval_seconds: int
    creator_ids: list[str] = field(default_factory=list)
    usernames: list[str] = field(default_factory=list)
    following_of: Optional[str] = None


def _section(raw: dict, key: str, path: str) -> Optional[dict]:
    value = raw.get(key)
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ConfigError(f"invalid config: {path}.{key} must be an object")
    return value


def _enabled_event(events: dict, status: NotificationStatus) -> Optional[dict]:
    key = EVENT_KEYS[status]
    section = _section(events, key, "events")
    if section is None or not section.get("enabled", True):
        return None
    return section


def _build_command(raw: dict, path: str) -> CommandConfig:
    name = raw.get("name")
    if not name:
        raise ConfigError(f"invalid config: {path}.name")
    working_directory = raw.get("working_directory")
    if not working_directory:
        raise ConfigError(f"invalid config: {path}.working_directory")
    args = raw.get("args", []) or []
    if not isinstance(args, list) or not all(isinstance(arg, str) for arg in args):
        raise ConfigError(f"invalid config: {path}.args must be a list of strings")
    return CommandConfig(
        name=str(name),
        args=list(args),
        working_directory=str(working_directory),
        capture_stderr=bool(raw.get("capture_stderr", False)),
    )


def build_event_actions(events: dict) -> dict[NotificationStatus, EventAction]:
    """Build the per-stage action table from the ``events`` section.

    Disabled or absent stages have no entry; the notifier treats them as a
    no-op.
    """

    actions: dict[NotificationStatus, EventAction] = {}
    for status, key in EVENT_KEYS.items():
        section = _enabled_event(events, status)
        if section is None:
            continue
        path = f"events.{key}"

        message = None
        notification = _section(section, "notification", path)
        if notification is not None:
            message = notification.get("message")
            if not message or not isinstance(message, str):
                raise ConfigError(f"invalid config: {path}.notification.message")

        command = None
        command_raw = _section(section, "command", path)
        if command_raw is not None:
            command = _build_command(command_raw, f"{path}.command")

        actions[status] = EventAction(status=status, message=message, command=command)
    return actions


def build_thresholds(events: dict) -> StatusThresholds:
    """Build the stage switches the status resolver needs."""

    remind_before = None
    remind = _enabled_event(events, NotificationStatus.SCHEDULE_REMIND)
    if remind is not None:
        try:
            before = int(remind.get("before_seconds", 0))
        except (TypeError, ValueError) as exc:
            raise ConfigError("invalid config: events.schedule_remind.before_seconds") from exc
        if before <= 0:
            raise ConfigError("invalid config: events.schedule_remind.before_seconds must be > 0")
        remind_before = timedelta(seconds=before)

    schedule = _enabled_event(events, NotificationStatus.SCHEDULE)
    return StatusThresholds(schedule_enabled=schedule is not None, remind_before=remind_before)


def build_watch_config(raw: dict[str, Any]) -> WatchConfig:
    """Validate the ``watch`` section."""

    try:
        interval = int(raw.get("interval_seconds", 0))
    except (TypeError, ValueError) as exc:
        raise ConfigError("invalid config: watch.interval_seconds") from exc
    if interval <= 0:
        raise ConfigError("invalid config: watch.interval_seconds must be > 0")

    creator_ids = [str(value) for value in raw.get("creator_ids", []) or []]
    for creator_id in creator_ids:
        if not creator_id.isdigit():
            raise ConfigError(f"invalid config: watch.creator_ids contains {creator_id!r}")
    usernames = [str(value).lstrip("@") for value in raw.get("usernames", []) or []]
    following_of = raw.get("following_of")
    if following_of is not None:
        following_of = str(following_of)
        if not following_of.isdigit():
            raise ConfigError("invalid config: watch.following_of must be a user id")

    if not creator_ids and not usernames and following_of is None:
        raise ConfigError("invalid config: watch needs creator_ids, usernames or following_of")

    return WatchConfig(
        interval_seconds=interval,
        creator_ids=creator_ids,
        usernames=usernames,
        following_of=following_of,
    )
