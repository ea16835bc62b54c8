from __future__ import annotations

import asyncio
from typing import Optional

import pytest

from adapters.stage_notifier import StageNotifier
from core.config import CommandConfig, EventAction
from core.errors import DeliveryError, RenderError
from core.models import Creator, NotificationStatus, Space

SPACE = Space(id="spaceid", creator_id="42", title="Weekly <sync>", state="live")
CREATOR = Creator(id="42", name="Host", username="host")
COMMAND = CommandConfig(name="record", args=["{url}", "{creator.username}"], working_directory="/tmp")


class FakeSender:
    format_mode = "html"

    def __init__(self, fail: bool = False) -> None:
        self.messages: list[str] = []
        self._fail = fail

    async def send(self, message: str) -> Optional[int]:
        if self._fail:
            raise DeliveryError("timeout")
        self.messages.append(message)
        return 1000 + len(self.messages)


class FakeRunner:
    def __init__(self, fail: bool = False) -> None:
        self.launched: list[tuple[CommandConfig, list[str]]] = []
        self._fail = fail

    def launch(self, command: CommandConfig, args: list[str]) -> None:
        if self._fail:
            raise OSError("no such file")
        self.launched.append((command, args))


def _notifier(actions, sender=None, runner=None) -> StageNotifier:
    return StageNotifier(actions, sender or FakeSender(), runner)


def test_no_action_is_noop() -> None:
    sender = FakeSender()
    receipt = asyncio.run(_notifier({}, sender).notify(NotificationStatus.START, SPACE, CREATOR))
    assert receipt is None
    assert sender.messages == []


def test_message_is_rendered_for_sender_mode() -> None:
    sender = FakeSender()
    actions = {NotificationStatus.START: EventAction(NotificationStatus.START, message="{space.title} {url}")}

    receipt = asyncio.run(_notifier(actions, sender).notify(NotificationStatus.START, SPACE, CREATOR))

    assert sender.messages == ["Weekly &lt;sync&gt; https://twitter.com/i/spaces/spaceid"]
    assert receipt is not None
    assert receipt.message_id == 1001
    assert receipt.status == NotificationStatus.START


def test_command_launched_with_plain_args() -> None:
    runner = FakeRunner()
    actions = {
        NotificationStatus.START: EventAction(NotificationStatus.START, message="{url}", command=COMMAND),
    }

    asyncio.run(_notifier(actions, runner=runner).notify(NotificationStatus.START, SPACE, CREATOR))

    assert runner.launched == [(COMMAND, ["https://twitter.com/i/spaces/spaceid", "host"])]


def test_command_only_action_succeeds_without_delivery() -> None:
    sender = FakeSender()
    runner = FakeRunner()
    actions = {NotificationStatus.START: EventAction(NotificationStatus.START, command=COMMAND)}

    receipt = asyncio.run(_notifier(actions, sender, runner).notify(NotificationStatus.START, SPACE, CREATOR))

    assert receipt is not None
    assert receipt.message is None
    assert sender.messages == []
    assert len(runner.launched) == 1


def test_command_failure_is_not_propagated() -> None:
    actions = {NotificationStatus.START: EventAction(NotificationStatus.START, message="{url}", command=COMMAND)}
    receipt = asyncio.run(
        _notifier(actions, runner=FakeRunner(fail=True)).notify(NotificationStatus.START, SPACE, CREATOR)
    )
    assert receipt is not None


def test_bad_command_template_is_not_propagated() -> None:
    runner = FakeRunner()
    command = CommandConfig(name="record", args=["{nope}"], working_directory="/tmp")
    actions = {NotificationStatus.START: EventAction(NotificationStatus.START, command=command)}

    asyncio.run(_notifier(actions, runner=runner).notify(NotificationStatus.START, SPACE, CREATOR))

    assert runner.launched == []


def test_delivery_failure_skips_command() -> None:
    runner = FakeRunner()
    actions = {NotificationStatus.START: EventAction(NotificationStatus.START, message="{url}", command=COMMAND)}

    with pytest.raises(DeliveryError):
        asyncio.run(_notifier(actions, FakeSender(fail=True), runner).notify(NotificationStatus.START, SPACE, CREATOR))
    assert runner.launched == []


def test_bad_message_template_raises() -> None:
    actions = {NotificationStatus.START: EventAction(NotificationStatus.START, message="{space.nope}")}
    with pytest.raises(RenderError):
        asyncio.run(_notifier(actions).notify(NotificationStatus.START, SPACE, CREATOR))
