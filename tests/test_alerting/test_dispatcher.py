"""
Tests for the Action Dispatcher.

Covers:
- Channel routing (push, messaging, webhook, email) and payload shapes
- Template rendering with fallback for dangling template ids
- Per-action isolation: one failure does not block siblings
- Unsupported channels fail explicitly
- Dispatch metrics
"""

from datetime import datetime, timezone

import pytest
import pytest_asyncio

from fundwatch import metrics
from fundwatch.alerting.dispatcher import ActionDispatcher
from fundwatch.alerting.schemas import (
    ActionChannel,
    AlertPriority,
    AlertRule,
    EmailAction,
    MessagingAction,
    NotificationTemplate,
    PushAction,
    WebhookAction,
)
from fundwatch.storage.kv import InMemoryKeyValueStore
from fundwatch.storage.stores import TemplateStore

NOW = datetime(2024, 1, 2, 6, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def templates():
    store = TemplateStore(InMemoryKeyValueStore())
    await store.add(NotificationTemplate(
        id="template_total",
        name="Total",
        subject="Daily total",
        body="Total: ${total_amount} ({contribution_count})",
        created_at=NOW,
    ))
    return store


@pytest.fixture
def dispatcher(templates, reader, push, messaging, webhook, email, clock):
    return ActionDispatcher(
        templates,
        reader,
        push=push,
        messaging=messaging,
        webhook=webhook,
        email=email,
        clock=clock,
    )


def _rule(actions, name: str = "Big Day", priority=AlertPriority.HIGH) -> AlertRule:
    return AlertRule(
        id="rule_1",
        name=name,
        actions=actions,
        priority=priority,
        created_at=NOW,
    )


class TestRouting:
    @pytest.mark.asyncio
    async def test_push_payload(self, dispatcher, push, reader):
        reader.add(125.5)
        results = await dispatcher.dispatch(_rule([PushAction(template_id="template_total")]))

        assert [r.success for r in results] == [True]
        assert push.sent == [{
            "title": "Alert: Big Day",
            "body": "Total: $125.50 (1)",
            "data": {"ruleId": "rule_1", "priority": "high"},
        }]

    @pytest.mark.asyncio
    async def test_messaging_category_alert(self, dispatcher, messaging):
        await dispatcher.dispatch(_rule([MessagingAction(template_id="template_total")]))
        assert messaging.sent == [("Total: $0.00 (0)", "alert")]

    @pytest.mark.asyncio
    async def test_webhook_payload(self, dispatcher, webhook, clock):
        await dispatcher.dispatch(_rule([
            WebhookAction(template_id="missing", webhook_url="https://hooks.example.com/x"),
        ]))
        url, payload = webhook.posted[0]
        assert url == "https://hooks.example.com/x"
        assert payload == {
            "rule": "Big Day",
            "message": "Alert triggered: Big Day",
            "priority": "high",
            "timestamp": clock().isoformat(),
        }

    @pytest.mark.asyncio
    async def test_email_uses_template_subject(self, dispatcher, email):
        await dispatcher.dispatch(_rule([
            EmailAction(template_id="template_total", recipients=["treasurer@example.com"]),
        ]))
        assert email.sent == [(["treasurer@example.com"], "Daily total", "Total: $0.00 (0)")]

    @pytest.mark.asyncio
    async def test_email_without_template_uses_alert_subject(self, dispatcher, email):
        await dispatcher.dispatch(_rule([
            EmailAction(template_id="gone", recipients=["a@example.com"]),
        ]))
        assert email.sent == [(["a@example.com"], "Alert: Big Day", "Alert triggered: Big Day")]

    @pytest.mark.asyncio
    async def test_missing_template_does_not_read_activity(self, dispatcher, reader):
        await dispatcher.dispatch(_rule([PushAction(template_id="gone")]))
        assert reader.calls == []

    @pytest.mark.asyncio
    async def test_activity_read_once_per_dispatch(self, dispatcher, reader):
        await dispatcher.dispatch(_rule([
            PushAction(template_id="template_total"),
            MessagingAction(template_id="template_total"),
        ]))
        assert reader.calls == [24.0]


class TestIsolation:
    @pytest.mark.asyncio
    async def test_failing_webhook_does_not_block_push(self, dispatcher, webhook, push):
        webhook.fail = True
        results = await dispatcher.dispatch(_rule([
            WebhookAction(template_id="template_total", webhook_url="https://hooks.example.com/x"),
            PushAction(template_id="template_total"),
        ]))

        assert [(r.channel, r.success) for r in results] == [
            (ActionChannel.WEBHOOK, False),
            (ActionChannel.PUSH, True),
        ]
        assert "HTTP 500" in results[0].detail
        assert len(push.sent) == 1

    @pytest.mark.asyncio
    async def test_unconfigured_channel_fails_explicitly(self, templates, reader, push, clock):
        dispatcher = ActionDispatcher(templates, reader, push=push, clock=clock)
        results = await dispatcher.dispatch(_rule([
            EmailAction(template_id="template_total", recipients=["a@example.com"]),
            PushAction(template_id="template_total"),
        ]))

        assert results[0].success is False
        assert "No sender configured for channel: email" in results[0].detail
        assert results[1].success is True

    @pytest.mark.asyncio
    async def test_activity_failure_fails_only_templated_actions(self, dispatcher, reader, push):
        reader.fail = True
        results = await dispatcher.dispatch(_rule([
            PushAction(template_id="template_total"),
            PushAction(template_id="gone"),
        ]))
        assert [r.success for r in results] == [False, True]
        assert push.sent[0]["body"] == "Alert triggered: Big Day"


class TestDispatchMetrics:
    @pytest.mark.asyncio
    async def test_counters_per_channel(self, dispatcher, webhook):
        webhook.fail = True
        await dispatcher.dispatch(_rule([
            WebhookAction(template_id="t", webhook_url="https://hooks.example.com/x"),
            PushAction(template_id="t"),
            MessagingAction(template_id="t"),
        ]))
        snapshot = metrics.get_engine_metrics()
        assert snapshot["actions_failed_total"] == 1
        assert snapshot["actions_failed_webhook"] == 1
        assert snapshot["actions_dispatched_total"] == 2
        assert snapshot["actions_dispatched_push"] == 1
        assert snapshot["actions_dispatched_messaging"] == 1
