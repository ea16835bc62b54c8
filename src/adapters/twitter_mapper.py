"""Twitter-to-core mapping adapter.

This keeps the Twitter API v2 payload shape out of the core pipeline.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from core.models import Creator, FetchResult, RateLimit, Space

LOGGER = logging.getLogger(__name__)

HEADER_LIMIT = "x-rate-limit-limit"
HEADER_REMAINING = "x-rate-limit-remaining"
HEADER_RESET = "x-rate-limit-reset"


def parse_timestamp(raw: Any) -> Optional[datetime]:
    """Parse an API timestamp such as ``2021-07-01T12:00:00.000Z``.

    Unparseable values map to None; the status resolver decides whether a
    missing timestamp makes the Space invalid.
    """

    if not raw:
        return None
    if not isinstance(raw, str):
        LOGGER.warning("Non-string timestamp from API: %r", raw)
        return None
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        LOGGER.warning("Unparseable timestamp from API: %r", raw)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_rate_limit(headers: Mapping[str, str]) -> Optional[RateLimit]:
    """Build a RateLimit from response headers, None when they are absent.

    The reset header is an epoch timestamp in seconds.
    """

    raw_limit = headers.get(HEADER_LIMIT)
    raw_remaining = headers.get(HEADER_REMAINING)
    raw_reset = headers.get(HEADER_RESET)
    if raw_limit is None and raw_remaining is None and raw_reset is None:
        return None
    try:
        limit = int(raw_limit) if raw_limit else 0
        remaining = int(raw_remaining) if raw_remaining else 0
        reset_epoch = int(raw_reset) if raw_reset else 0
    except ValueError:
        LOGGER.warning("Malformed rate-limit headers: %s/%s/%s", raw_limit, raw_remaining, raw_reset)
        return None
    return RateLimit(
        limit=limit,
        remaining=max(remaining, 0),
        reset_at=datetime.fromtimestamp(reset_epoch, tz=timezone.utc),
    )


def build_space(entry: Any) -> Optional[Space]:
    """Build a Space from one ``data`` entry, None when it is unusable."""

    if not isinstance(entry, Mapping):
        LOGGER.warning("Skipping space entry that is not an object: %r", entry)
        return None
    space_id = entry.get("id")
    if not space_id:
        LOGGER.warning("Skipping space entry without id: %s", entry)
        return None
    return Space(
        id=str(space_id),
        creator_id=str(entry.get("creator_id", "")),
        title=entry.get("title") or "",
        state=entry.get("state"),
        scheduled_start=parse_timestamp(entry.get("scheduled_start")),
        started_at=parse_timestamp(entry.get("started_at")),
        created_at=parse_timestamp(entry.get("created_at")),
    )


def build_creator(entry: Any) -> Optional[Creator]:
    if not isinstance(entry, Mapping):
        LOGGER.warning("Skipping user entry that is not an object: %r", entry)
        return None
    return Creator(
        id=str(entry.get("id", "")),
        name=entry.get("name") or "",
        username=entry.get("username") or "",
    )


def _entries(value: Any) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        LOGGER.warning("Expected a list in API payload, got %s", type(value).__name__)
        return []
    return value


def build_creators(entries: Any) -> list[Creator]:
    """Build creators from a ``data`` or ``includes.users`` list, skipping bad entries."""

    creators = []
    for entry in _entries(entries):
        creator = build_creator(entry)
        if creator is not None:
            creators.append(creator)
    return creators


def build_fetch_result(payload: Mapping[str, Any], rate_limit: Optional[RateLimit]) -> FetchResult:
    """Map a ``spaces/by/creator_ids`` response body into a FetchResult."""

    spaces = []
    for entry in _entries(payload.get("data")):
        space = build_space(entry)
        if space is not None:
            spaces.append(space)

    includes = payload.get("includes")
    if not isinstance(includes, Mapping):
        includes = {}
    creators = {creator.id: creator for creator in build_creators(includes.get("users"))}

    return FetchResult(spaces=spaces, creators=creators, rate_limit=rate_limit)
