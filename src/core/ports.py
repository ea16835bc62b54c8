"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for fetch, storage, delivery and command
adapters so that the core can be reused with different backends.
"""

from __future__ import annotations

from typing import Optional, Protocol

from core.config import CommandConfig
from core.models import Creator, DeliveryReceipt, FetchResult, NotificationStatus, Space, SpaceRecord


class SpaceSourcePort(Protocol):
    """Fetch primitive consumed once per poll cycle.

    Raises ``FetchError`` when no batch could be obtained.
    """

    async def fetch(self, creator_ids: list[str]) -> FetchResult:
        ...


class StoragePort(Protocol):
    """Dedup store operations required by the core pipeline.

    Every method raises ``StoreUnavailable`` on I/O failure.
    """

    def get_status(self, space_id: str) -> NotificationStatus:
        ...

    def should_notify(self, space_id: str, candidate: NotificationStatus) -> bool:
        ...

    def commit(self, record: SpaceRecord) -> None:
        ...


class MessageSender(Protocol):
    """Outbound channel for rendered notifications.

    Returns a delivery handle (message id) and raises ``DeliveryError``.
    """

    format_mode: str

    async def send(self, message: str) -> Optional[int]:
        ...


class CommandRunner(Protocol):
    """Fire-and-forget launcher for side-effect commands."""

    def launch(self, command: CommandConfig, args: list[str]) -> None:
        ...


class NotifierPort(Protocol):
    """Notification operation required by the dispatcher."""

    async def notify(
        self, status: NotificationStatus, space: Space, creator: Creator
    ) -> Optional[DeliveryReceipt]:
        ...
