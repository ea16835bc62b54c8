"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from typing import Optional

SPACE_URL = "https://twitter.com/i/spaces/{space_id}"


class NotificationStatus(IntEnum):
    """Lifecycle stage of a Space, ordered from earliest to latest.

    The stored stage for a Space only ever moves up, so a single ">"
    comparison decides whether a stage is new.
    """

    NONE = 0
    SCHEDULE = 1
    SCHEDULE_REMIND = 2
    START = 3


@dataclass(frozen=True)
class Space:
    """Snapshot of one Space as returned by a single fetch."""

    id: str
    creator_id: str
    title: str
    state: Optional[str]
    scheduled_start: Optional[datetime] = None
    started_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @property
    def url(self) -> str:
        return SPACE_URL.format(space_id=self.id)


@dataclass(frozen=True)
class Creator:
    """Account that hosts a Space."""

    id: str
    name: str = ""
    username: str = ""


@dataclass(frozen=True)
class RateLimit:
    """Rate-limit budget reported by the remote API on the last request."""

    limit: int
    remaining: int
    reset_at: datetime


@dataclass(frozen=True)
class FetchResult:
    """Everything one poll returns: the batch, its creators and the budget."""

    spaces: list[Space] = field(default_factory=list)
    creators: dict[str, Creator] = field(default_factory=dict)
    rate_limit: Optional[RateLimit] = None


@dataclass(frozen=True)
class SpaceRecord:
    """Persisted representation of the highest stage notified for a Space."""

    space_id: str
    creator_id: str
    screen_name: str
    title: str
    status: NotificationStatus
    scheduled_start: Optional[datetime] = None
    started_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    notified_at: Optional[datetime] = None


def build_record(
    space: Space,
    creator: Creator,
    status: NotificationStatus,
    notified_at: datetime,
) -> SpaceRecord:
    """Build the record committed after a successful notification.

    Scheduled stages keep the scheduled start, the start stage keeps the
    actual start time.
    """

    is_start = status == NotificationStatus.START
    return SpaceRecord(
        space_id=space.id,
        creator_id=creator.id,
        screen_name=creator.username,
        title=space.title,
        status=status,
        scheduled_start=None if is_start else space.scheduled_start,
        started_at=space.started_at if is_start else None,
        created_at=space.created_at,
        notified_at=notified_at,
    )


@dataclass(frozen=True)
class DeliveryReceipt:
    """Handle for one delivered notification."""

    status: NotificationStatus
    space_id: str
    message: Optional[str]
    message_id: Optional[int] = None
