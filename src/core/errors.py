"""Error taxonomy shared by the core and adapters."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from core.models import NotificationStatus, RateLimit


class WatchError(Exception):
    """Base class for all spacewatch errors."""


class ConfigError(WatchError):
    """Configuration is missing or malformed. Fatal at startup."""


class InvalidResource(WatchError):
    """A Space snapshot from the fetch is malformed."""


class StoreUnavailable(WatchError):
    """The dedup store could not be read or written."""


class RenderError(WatchError):
    """A message template could not be rendered."""


class DeliveryError(WatchError):
    """The outbound delivery failed. The next poll cycle retries it."""


class FetchError(WatchError):
    """The whole batch could not be fetched.

    ``rate_limit`` is set when the failed response still carried rate-limit
    headers (e.g. HTTP 429), so the scheduler can slow down accordingly.
    """

    def __init__(self, message: str, rate_limit: Optional[RateLimit] = None) -> None:
        super().__init__(message)
        self.rate_limit = rate_limit


@dataclass(frozen=True)
class SpaceFailure:
    """One Space that failed during a dispatch cycle."""

    space_id: str
    status: NotificationStatus
    error: Exception


class BatchError(WatchError):
    """Aggregate error for a dispatch cycle where at least one Space failed."""

    def __init__(self, failures: list[SpaceFailure]) -> None:
        self.failures = list(failures)
        ids = ", ".join(failure.space_id for failure in self.failures)
        super().__init__(f"{len(self.failures)} space(s) failed: {ids}")
