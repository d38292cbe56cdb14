"""
Action Dispatcher — renders a fired rule's actions and routes them to channels.

Each action is isolated: a failure is logged, counted and reported in the
returned ActionResult list, and never stops the remaining actions.
"""

from datetime import datetime
from typing import Optional

import structlog

from fundwatch import metrics
from fundwatch.alerting.evaluator import ActivityReader
from fundwatch.alerting.schemas import (
    ActionChannel,
    ActionResult,
    AlertAction,
    AlertRule,
    EmailAction,
    MessagingAction,
    PushAction,
    WebhookAction,
)
from fundwatch.alerting.templates import (
    DEFAULT_TIMESTAMP_FORMAT,
    ActivitySnapshot,
    render_template,
)
from fundwatch.channels.base import EmailSender, MessagingSender, PushSender, WebhookPoster
from fundwatch.clock import Clock, system_clock
from fundwatch.exceptions import UnsupportedChannelError
from fundwatch.storage.stores import TemplateStore

logger = structlog.get_logger(__name__)


class ActionDispatcher:
    """
    Sends the actions of a fired rule.

    Senders are optional; an action whose channel has no sender fails with
    UnsupportedChannelError.
    """

    def __init__(
        self,
        templates: TemplateStore,
        reader: ActivityReader,
        push: Optional[PushSender] = None,
        messaging: Optional[MessagingSender] = None,
        webhook: Optional[WebhookPoster] = None,
        email: Optional[EmailSender] = None,
        clock: Clock = system_clock,
        template_window_hours: float = 24.0,
        timestamp_format: str = DEFAULT_TIMESTAMP_FORMAT,
    ):
        self._templates = templates
        self._reader = reader
        self._push = push
        self._messaging = messaging
        self._webhook = webhook
        self._email = email
        self._clock = clock
        self._window_hours = template_window_hours
        self._timestamp_format = timestamp_format

    async def dispatch(self, rule: AlertRule, now: Optional[datetime] = None) -> list[ActionResult]:
        """Run every action of `rule`. Returns one result per action, in order."""
        now = now or self._clock()
        snapshot: Optional[ActivitySnapshot] = None
        results: list[ActionResult] = []

        for action in rule.actions:
            channel = ActionChannel(action.channel)
            try:
                template = self._templates.get(action.template_id)
                if template is not None and snapshot is None:
                    records = await self._reader.get_recent_contributions(self._window_hours)
                    snapshot = ActivitySnapshot.from_records(records)
                message = render_template(
                    template,
                    snapshot or ActivitySnapshot(),
                    rule,
                    now,
                    self._timestamp_format,
                )
                subject = template.subject if template and template.subject else f"Alert: {rule.name}"
                await self._send(action, rule, message, subject, now)
            except Exception as e:
                metrics.increment_channel("actions_failed", channel.value)
                logger.error(
                    "action_dispatch_failed",
                    rule_id=rule.id,
                    channel=channel.value,
                    template_id=action.template_id,
                    error=str(e),
                )
                results.append(ActionResult(
                    channel=channel,
                    template_id=action.template_id,
                    success=False,
                    detail=str(e),
                ))
                continue

            metrics.increment_channel("actions_dispatched", channel.value)
            logger.info(
                "action_dispatched",
                rule_id=rule.id,
                channel=channel.value,
                template_id=action.template_id,
            )
            results.append(ActionResult(
                channel=channel,
                template_id=action.template_id,
                success=True,
            ))

        return results

    async def _send(
        self,
        action: AlertAction,
        rule: AlertRule,
        message: str,
        subject: str,
        now: datetime,
    ) -> None:
        if isinstance(action, PushAction):
            if self._push is None:
                raise UnsupportedChannelError(action.channel)
            await self._push.send(
                title=f"Alert: {rule.name}",
                body=message,
                data={"ruleId": rule.id, "priority": rule.priority.value},
            )
        elif isinstance(action, MessagingAction):
            if self._messaging is None:
                raise UnsupportedChannelError(action.channel)
            await self._messaging.send(message, category="alert")
        elif isinstance(action, WebhookAction):
            if self._webhook is None:
                raise UnsupportedChannelError(action.channel)
            await self._webhook.post(
                action.webhook_url,
                {
                    "rule": rule.name,
                    "message": message,
                    "priority": rule.priority.value,
                    "timestamp": now.isoformat(),
                },
            )
        elif isinstance(action, EmailAction):
            if self._email is None:
                raise UnsupportedChannelError(action.channel)
            await self._email.send(action.recipients, subject, message)
        else:
            raise UnsupportedChannelError(str(getattr(action, "channel", "unknown")))
