from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional

from core.dispatcher import SpaceDispatcher
from core.errors import DeliveryError, InvalidResource, StoreUnavailable
from core.models import Creator, DeliveryReceipt, NotificationStatus, Space, SpaceRecord
from core.status import StatusThresholds

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeStorage:
    def __init__(self) -> None:
        self.records: dict[str, SpaceRecord] = {}
        self.fail_commit_for: set[str] = set()

    def get_status(self, space_id: str) -> NotificationStatus:
        record = self.records.get(space_id)
        return record.status if record else NotificationStatus.NONE

    def should_notify(self, space_id: str, candidate: NotificationStatus) -> bool:
        return candidate > self.get_status(space_id)

    def commit(self, record: SpaceRecord) -> None:
        if record.space_id in self.fail_commit_for:
            raise StoreUnavailable("disk full")
        self.records[record.space_id] = record


class FakeNotifier:
    def __init__(self, fail_for: Optional[set[str]] = None) -> None:
        self.sent: list[tuple[NotificationStatus, str]] = []
        self._fail_for = fail_for or set()

    async def notify(self, status: NotificationStatus, space: Space, creator: Creator) -> DeliveryReceipt:
        await asyncio.sleep(0)
        if space.id in self._fail_for:
            raise DeliveryError("network down")
        self.sent.append((status, space.id))
        return DeliveryReceipt(status=status, space_id=space.id, message="sent", message_id=len(self.sent))


def _space(space_id: str, state: Optional[str] = "scheduled", offset: int = 3600) -> Space:
    return Space(
        id=space_id,
        creator_id="42",
        title=f"Space {space_id}",
        state=state,
        scheduled_start=NOW + timedelta(seconds=offset),
        started_at=NOW if state == "live" else None,
        created_at=NOW - timedelta(hours=1),
    )


CREATORS = {"42": Creator(id="42", name="Host", username="host")}


def _dispatcher(storage, notifier, thresholds=None, now=NOW) -> SpaceDispatcher:
    return SpaceDispatcher(
        storage=storage,
        notifier=notifier,
        thresholds=thresholds or StatusThresholds(schedule_enabled=True),
        clock=lambda: now,
    )


def test_same_stage_is_notified_once_across_polls() -> None:
    storage = FakeStorage()
    notifier = FakeNotifier()
    dispatcher = _dispatcher(storage, notifier)

    for _ in range(5):
        assert asyncio.run(dispatcher.process([_space("a")], CREATORS)) is None

    assert notifier.sent == [(NotificationStatus.SCHEDULE, "a")]
    assert storage.records["a"].status == NotificationStatus.SCHEDULE
    assert storage.records["a"].screen_name == "host"


def test_remind_follows_schedule() -> None:
    storage = FakeStorage()
    notifier = FakeNotifier()
    thresholds = StatusThresholds(schedule_enabled=True, remind_before=timedelta(seconds=1800))

    asyncio.run(_dispatcher(storage, notifier, thresholds).process([_space("a")], CREATORS))
    later = NOW + timedelta(seconds=1801)
    asyncio.run(_dispatcher(storage, notifier, thresholds, now=later).process([_space("a")], CREATORS))

    assert notifier.sent == [
        (NotificationStatus.SCHEDULE, "a"),
        (NotificationStatus.SCHEDULE_REMIND, "a"),
    ]


def test_live_after_schedule_notifies_start() -> None:
    storage = FakeStorage()
    notifier = FakeNotifier()
    dispatcher = _dispatcher(storage, notifier)

    asyncio.run(dispatcher.process([_space("a")], CREATORS))
    asyncio.run(dispatcher.process([_space("a", state="live")], CREATORS))

    assert notifier.sent[-1] == (NotificationStatus.START, "a")
    record = storage.records["a"]
    assert record.status == NotificationStatus.START
    assert record.started_at == NOW
    assert record.scheduled_start is None


def test_scheduled_after_live_is_suppressed() -> None:
    storage = FakeStorage()
    notifier = FakeNotifier()
    dispatcher = _dispatcher(storage, notifier)

    asyncio.run(dispatcher.process([_space("a", state="live")], CREATORS))
    asyncio.run(dispatcher.process([_space("a")], CREATORS))

    assert notifier.sent == [(NotificationStatus.START, "a")]


def test_invalid_space_does_not_block_others() -> None:
    storage = FakeStorage()
    notifier = FakeNotifier()
    dispatcher = _dispatcher(storage, notifier)
    spaces = [_space(str(i)) for i in range(9)] + [_space("broken", state=None)]

    error = asyncio.run(dispatcher.process(spaces, CREATORS))

    assert error is not None
    assert [failure.space_id for failure in error.failures] == ["broken"]
    assert isinstance(error.failures[0].error, InvalidResource)
    assert len(notifier.sent) == 9


def test_delivery_failure_is_not_committed_and_retried() -> None:
    storage = FakeStorage()
    notifier = FakeNotifier(fail_for={"b"})
    dispatcher = _dispatcher(storage, notifier)

    error = asyncio.run(dispatcher.process([_space("a"), _space("b")], CREATORS))

    assert error is not None
    assert isinstance(error.failures[0].error, DeliveryError)
    assert error.failures[0].status == NotificationStatus.SCHEDULE
    assert "b" not in storage.records
    assert (NotificationStatus.SCHEDULE, "a") in notifier.sent

    # Next cycle, with the remote back, the same stage goes out.
    recovered = FakeNotifier()
    assert asyncio.run(_dispatcher(storage, recovered).process([_space("a"), _space("b")], CREATORS)) is None
    assert recovered.sent == [(NotificationStatus.SCHEDULE, "b")]


def test_commit_failure_is_reported() -> None:
    storage = FakeStorage()
    storage.fail_commit_for.add("a")
    notifier = FakeNotifier()

    error = asyncio.run(_dispatcher(storage, notifier).process([_space("a")], CREATORS))

    assert error is not None
    assert isinstance(error.failures[0].error, StoreUnavailable)
    assert notifier.sent == [(NotificationStatus.SCHEDULE, "a")]


def test_missing_creator_uses_placeholder() -> None:
    storage = FakeStorage()
    notifier = FakeNotifier()

    assert asyncio.run(_dispatcher(storage, notifier).process([_space("a")], {})) is None
    assert storage.records["a"].creator_id == "42"


def test_empty_batch() -> None:
    assert asyncio.run(_dispatcher(FakeStorage(), FakeNotifier()).process([], {})) is None
