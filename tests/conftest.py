"""
Pytest Configuration and Fixtures.

Provides:
- A controllable clock pinned to Tuesday 2024-01-02 06:00 UTC
- Fake activity reader and recording channel senders
- A fake notification scheduler
- A fully wired NotificationService over an in-memory store
"""

import asyncio
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest
import pytest_asyncio

# Set testing mode before importing the package settings
os.environ["STORE_BACKEND"] = "memory"
os.environ["MONITOR_ENABLED"] = "false"
os.environ["LOG_FORMAT"] = "console"

from fundwatch import metrics  # noqa: E402
from fundwatch.alerting.schemas import ContributionRecord  # noqa: E402
from fundwatch.config import settings  # noqa: E402
from fundwatch.exceptions import DispatchError  # noqa: E402
from fundwatch.service import NotificationService  # noqa: E402
from fundwatch.storage.kv import InMemoryKeyValueStore  # noqa: E402
from fundwatch.storage.stores import RuleStore, ScheduleStore, TemplateStore  # noqa: E402

# Tuesday
BASE_TIME = datetime(2024, 1, 2, 6, 0, tzinfo=timezone.utc)


# ============================================================================
# FAKES
# ============================================================================


class MutableClock:
    """Callable clock that tests move forward explicitly."""

    def __init__(self, now: datetime = BASE_TIME):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeActivityReader:
    """
    Serves `records` filtered to the requested window relative to the clock.

    Set `gate` to hold reads until it is released; `entered` flags a read in progress.
    """

    def __init__(self, clock: MutableClock):
        self.clock = clock
        self.records: list[ContributionRecord] = []
        self.calls: list[float] = []
        self.fail = False
        self.entered = asyncio.Event()
        self.gate: Optional[asyncio.Event] = None

    def add(
        self,
        amount: float,
        member_id: str = "m1",
        platform: str = "zelle",
        minutes_ago: float = 5,
        member_name: str = "",
    ) -> ContributionRecord:
        record = ContributionRecord(
            id=f"c{len(self.records) + 1}",
            member_id=member_id,
            member_name=member_name or member_id.upper(),
            amount=amount,
            platform=platform,
            date=self.clock() - timedelta(minutes=minutes_ago),
        )
        self.records.append(record)
        return record

    async def get_recent_contributions(self, hours: float) -> list[ContributionRecord]:
        self.calls.append(hours)
        self.entered.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise ConnectionError("activity source down")
        since = self.clock() - timedelta(hours=hours)
        return [r for r in self.records if r.date >= since]


class RecordingPush:
    def __init__(self):
        self.sent: list[dict[str, Any]] = []
        self.fail = False

    async def send(self, title: str, body: str, data: Optional[dict[str, Any]] = None) -> None:
        if self.fail:
            raise DispatchError("push", "device unreachable")
        self.sent.append({"title": title, "body": body, "data": data})


class RecordingMessaging:
    def __init__(self):
        self.sent: list[tuple[str, str]] = []

    async def send(self, message: str, category: str) -> None:
        self.sent.append((message, category))


class RecordingWebhook:
    def __init__(self):
        self.posted: list[tuple[str, dict[str, Any]]] = []
        self.fail = False

    async def post(self, url: str, payload: dict[str, Any]) -> None:
        if self.fail:
            raise DispatchError("webhook", "HTTP 500", {"url": url})
        self.posted.append((url, payload))


class RecordingEmail:
    def __init__(self):
        self.sent: list[tuple[list[str], str, str]] = []

    async def send(self, recipients: list[str], subject: str, body: str) -> None:
        self.sent.append((recipients, subject, body))


class FakeScheduler:
    """Records registrations; `scheduled` holds the live ones."""

    def __init__(self):
        self.scheduled: dict[str, tuple[datetime, dict[str, Any]]] = {}
        self.cancelled: list[str] = []

    async def schedule(self, notification_id: str, fire_at: datetime, payload: dict[str, Any]) -> None:
        self.scheduled[notification_id] = (fire_at, payload)

    async def cancel(self, notification_id: str) -> None:
        self.cancelled.append(notification_id)
        self.scheduled.pop(notification_id, None)


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture(autouse=True)
def _reset_metrics():
    metrics.reset_engine_metrics()
    yield
    metrics.reset_engine_metrics()


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock()


@pytest.fixture
def reader(clock) -> FakeActivityReader:
    return FakeActivityReader(clock)


@pytest.fixture
def push() -> RecordingPush:
    return RecordingPush()


@pytest.fixture
def messaging() -> RecordingMessaging:
    return RecordingMessaging()


@pytest.fixture
def webhook() -> RecordingWebhook:
    return RecordingWebhook()


@pytest.fixture
def email() -> RecordingEmail:
    return RecordingEmail()


@pytest.fixture
def fake_scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def kv() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def test_settings():
    return settings.model_copy(update={
        "monitor_enabled": False,
        "seed_default_templates": False,
    })


@pytest_asyncio.fixture
async def service(kv, reader, push, messaging, webhook, email, fake_scheduler, test_settings, clock):
    """Initialized service (monitor not started; drive it with service.monitor.tick)."""
    svc = NotificationService(
        RuleStore(kv),
        TemplateStore(kv),
        ScheduleStore(kv),
        reader,
        push=push,
        messaging=messaging,
        webhook=webhook,
        email=email,
        scheduler=fake_scheduler,
        settings=test_settings,
        clock=clock,
    )
    await svc.initialize(start_monitor=False)
    yield svc
    await svc.shutdown()
