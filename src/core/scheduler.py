"""Adaptive poll loop.

The scheduler alternates between two states: idle (waiting for the next
deadline) and polling (fetch plus dispatch in flight). After every poll it
recomputes the interval from the rate-limit budget the API reported, so the
watcher spreads its remaining requests evenly until the window resets.
"""

from __future__ import annotations

import asyncio
import logging
import math
from datetime import datetime, timezone
from typing import Callable, Optional

from core.dispatcher import SpaceDispatcher
from core.errors import FetchError
from core.models import RateLimit
from core.ports import SpaceSourcePort

LOGGER = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def compute_next_interval(
    current: float,
    base: float,
    rate_limit: Optional[RateLimit],
    now: datetime,
) -> float:
    """Return the delay before the next poll.

    Without a rate-limit snapshot the current interval is kept. Otherwise the
    seconds left until reset are divided over ``remaining + 1`` requests (one
    request is always held back for the next call), floored at ``base``.
    """

    if rate_limit is None:
        return current

    seconds_until_reset = (rate_limit.reset_at - now).total_seconds()
    interval_for_reset = math.ceil(seconds_until_reset / (max(rate_limit.remaining, 0) + 1))
    return max(base, interval_for_reset)


class PollScheduler:
    """Drives fetch and dispatch cycles until the stop event is set.

    Cycles never overlap: the next fetch only starts after the previous
    dispatch has fully drained.
    """

    def __init__(
        self,
        source: SpaceSourcePort,
        dispatcher: SpaceDispatcher,
        creator_ids: list[str],
        base_interval: float,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._source = source
        self._dispatcher = dispatcher
        self._creator_ids = list(creator_ids)
        self._base_interval = base_interval
        self._interval = base_interval
        self._clock = clock

    @property
    def interval(self) -> float:
        return self._interval

    async def poll_once(self) -> bool:
        """Run one fetch and dispatch cycle.

        Returns True when the interval changed and the timer must be rearmed.
        """

        rate_limit: Optional[RateLimit] = None
        try:
            result = await self._source.fetch(self._creator_ids)
        except FetchError as exc:
            LOGGER.error("Fetch spaces failed: %s", exc)
            rate_limit = exc.rate_limit
        except Exception:
            LOGGER.exception("Fetch spaces failed unexpectedly")
        else:
            rate_limit = result.rate_limit
            LOGGER.info(
                "Fetched %s space(s) from %s creator(s), rate=%s",
                len(result.spaces),
                len(self._creator_ids),
                rate_limit,
            )
            try:
                batch_error = await self._dispatcher.process(result.spaces, result.creators)
            except Exception:
                LOGGER.exception("Dispatch failed unexpectedly")
            else:
                if batch_error is not None:
                    LOGGER.error("Dispatch finished with errors: %s", batch_error)

        next_interval = compute_next_interval(self._interval, self._base_interval, rate_limit, self._clock())
        if next_interval == self._interval:
            return False
        LOGGER.info("Poll interval changed: %ss -> %ss", self._interval, next_interval)
        self._interval = next_interval
        return True

    async def run(self, stop_event: asyncio.Event) -> None:
        """Poll on a ticker until ``stop_event`` is set.

        The first poll fires one interval after start. An unchanged interval
        keeps the ticker's cadence; a changed one restarts it from now.
        """

        loop = asyncio.get_running_loop()
        LOGGER.info("Poll scheduler started (interval=%ss)", self._interval)
        deadline = loop.time() + self._interval
        while not stop_event.is_set():
            timeout = max(deadline - loop.time(), 0)
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=timeout)
            except asyncio.TimeoutError:
                pass
            if stop_event.is_set():
                break

            rearm = await self.poll_once()

            now = loop.time()
            if rearm:
                deadline = now + self._interval
            else:
                # Ticks missed while polling are dropped, not queued.
                deadline = max(deadline + self._interval, now)
        LOGGER.info("Poll scheduler stopped")
