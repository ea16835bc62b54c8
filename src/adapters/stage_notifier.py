"""Per-stage notifier.

Implements the core NotifierPort: looks up the action configured for a
stage, renders its message for the sender's format, delivers it once, then
launches the optional side-effect command.
"""

from __future__ import annotations

import logging
from typing import Optional

from adapters.notification_formatting import TemplateContext, render_template
from core.config import EventAction
from core.errors import RenderError
from core.models import Creator, DeliveryReceipt, NotificationStatus, Space
from core.ports import CommandRunner, MessageSender

LOGGER = logging.getLogger(__name__)


class StageNotifier:
    """Turns a (stage, Space) transition into one delivery."""

    def __init__(
        self,
        actions: dict[NotificationStatus, EventAction],
        sender: MessageSender,
        command_runner: Optional[CommandRunner] = None,
    ) -> None:
        self._actions = dict(actions)
        self._sender = sender
        self._command_runner = command_runner

    async def notify(self, status: NotificationStatus, space: Space, creator: Creator) -> Optional[DeliveryReceipt]:
        """Deliver the notification for ``status``.

        Returns None when no action is configured for the stage. Raises
        RenderError or DeliveryError; command failures are never raised.
        """

        action = self._actions.get(status)
        if action is None:
            return None

        context = TemplateContext(space=space, creator=creator, status=status)
        receipt = DeliveryReceipt(status=status, space_id=space.id, message=None)
        if action.message is not None:
            message = render_template(action.message, context, self._sender.format_mode)
            message_id = await self._sender.send(message)
            receipt = DeliveryReceipt(status=status, space_id=space.id, message=message, message_id=message_id)

        if action.command is not None:
            self._launch_command(action, context)
        return receipt

    def _launch_command(self, action: EventAction, context: TemplateContext) -> None:
        if self._command_runner is None:
            LOGGER.warning("Command configured for %s but no runner is available", action.status.name)
            return
        try:
            args = [render_template(arg, context, "plain") for arg in action.command.args]
        except RenderError as exc:
            LOGGER.error("Command build error for space %s: %s", context.space.id, exc)
            return
        try:
            self._command_runner.launch(action.command, args)
        except Exception:
            LOGGER.exception("Command launch failed for space %s", context.space.id)
