"""Fan-out dispatch of one poll batch.

This module is integration-agnostic. It only relies on ports for storage and
notifications, so every adapter combination goes through the same gate:

1) Resolve the Space's current stage
2) Ask the dedup store whether that stage is new
3) Notify
4) Commit the stage, only after the notification succeeded

Each Space runs in its own task; a failure is reported and recorded without
touching sibling Spaces.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from core.errors import BatchError, SpaceFailure, WatchError
from core.models import Creator, NotificationStatus, Space, build_record
from core.ports import NotifierPort, StoragePort
from core.status import StatusThresholds, resolve_status

LOGGER = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SpaceDispatcher:
    """Runs resolve, dedup gate, notify and commit for every Space in a batch."""

    def __init__(
        self,
        storage: StoragePort,
        notifier: NotifierPort,
        thresholds: StatusThresholds,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._storage = storage
        self._notifier = notifier
        self._thresholds = thresholds
        self._clock = clock

    async def process(self, spaces: Iterable[Space], creators: dict[str, Creator]) -> Optional[BatchError]:
        """Process every Space concurrently and wait for all of them.

        Returns a ``BatchError`` listing the failed Spaces, or None when the
        whole batch succeeded. Failures are logged as they happen.
        """

        failures: list[SpaceFailure] = []
        tasks = [
            self._process_one(space, self._creator_for(space, creators), failures)
            for space in spaces
        ]
        if tasks:
            await asyncio.gather(*tasks)
        if failures:
            return BatchError(failures)
        return None

    def _creator_for(self, space: Space, creators: dict[str, Creator]) -> Creator:
        creator = creators.get(space.creator_id)
        if creator is None:
            LOGGER.warning("Creator %s missing from batch for space %s", space.creator_id, space.id)
            return Creator(id=space.creator_id)
        return creator

    async def _process_one(self, space: Space, creator: Creator, failures: list[SpaceFailure]) -> None:
        status = NotificationStatus.NONE
        try:
            status = resolve_status(space, self._clock(), self._thresholds)
            if not self._storage.should_notify(space.id, status):
                return

            LOGGER.info(
                "Notify space %s (%s) by @%s: %s",
                space.id,
                space.title,
                creator.username or creator.id,
                status.name,
            )
            receipt = await self._notifier.notify(status, space, creator)
            if receipt is not None:
                LOGGER.info("Delivered %s for space %s (message_id=%s)", status.name, space.id, receipt.message_id)

            # Commit only after delivery so a failed delivery is retried next cycle.
            self._storage.commit(build_record(space, creator, status, self._clock()))
        except WatchError as exc:
            LOGGER.error("Space %s failed at stage %s: %s: %s", space.id, status.name, type(exc).__name__, exc)
            failures.append(SpaceFailure(space_id=space.id, status=status, error=exc))
        except Exception as exc:
            LOGGER.exception("Unexpected error for space %s at stage %s", space.id, status.name)
            failures.append(SpaceFailure(space_id=space.id, status=status, error=exc))
