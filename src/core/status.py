"""Space lifecycle resolution (core domain)."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from core.errors import InvalidResource
from core.models import NotificationStatus, Space

STATE_SCHEDULED = "scheduled"
STATE_LIVE = "live"


@dataclass(frozen=True)
class StatusThresholds:
    """Which scheduled stages are enabled, and when reminders fire.

    ``remind_before`` of None disables the reminder stage entirely.
    """

    schedule_enabled: bool
    remind_before: Optional[timedelta] = None


def resolve_status(space: Space, now: datetime, thresholds: StatusThresholds) -> NotificationStatus:
    """Return the lifecycle stage a Space has reached at ``now``.

    Resolution rules:
    - A live Space is always at START.
    - A scheduled Space is at SCHEDULE_REMIND once ``now`` passes
      ``scheduled_start - remind_before``, otherwise at SCHEDULE when that
      stage is enabled.
    - Anything else (ended, canceled, unknown) is NONE.
    """

    if space.state is None:
        raise InvalidResource(f"space {space.id} has no state")

    if space.state == STATE_LIVE:
        return NotificationStatus.START

    if space.state == STATE_SCHEDULED:
        if space.scheduled_start is None:
            raise InvalidResource(f"scheduled space {space.id} has no scheduled_start")

        if thresholds.remind_before is not None:
            remind_cutoff = space.scheduled_start - thresholds.remind_before
            if now > remind_cutoff:
                return NotificationStatus.SCHEDULE_REMIND

        if thresholds.schedule_enabled:
            return NotificationStatus.SCHEDULE

    return NotificationStatus.NONE
