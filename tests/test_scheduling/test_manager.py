"""
Tests for the Schedule Manager.

Covers:
- Create computes next_scheduled and registers when enabled
- Custom recurrences persist without registration
- Update re-registers on schedule change and on enable/disable transitions
- Delete cancels then removes
- register_all and handle_fired roll recurrences forward
"""

from datetime import datetime, timezone

import pytest

from fundwatch.alerting.schemas import (
    ScheduleConfig,
    ScheduledNotificationCreate,
    ScheduledNotificationUpdate,
)
from fundwatch.exceptions import ScheduleNotFoundError, ValidationError
from fundwatch.scheduling.manager import ScheduleManager
from fundwatch.storage.kv import InMemoryKeyValueStore
from fundwatch.storage.stores import ScheduleStore


@pytest.fixture
def store(kv):
    return ScheduleStore(kv)


@pytest.fixture
def manager(store, fake_scheduler, clock):
    return ScheduleManager(store, scheduler=fake_scheduler, clock=clock, app_name="TRUEFAM")


def _daily(time: str = "09:00", enabled: bool = True) -> ScheduledNotificationCreate:
    return ScheduledNotificationCreate(
        type="daily_report",
        schedule=ScheduleConfig(type="daily", time=time),
        template_id="template_1",
        enabled=enabled,
    )


class TestCreate:
    @pytest.mark.asyncio
    async def test_computes_and_registers(self, manager, fake_scheduler):
        n = await manager.create(_daily())
        expected = datetime(2024, 1, 2, 9, 0, tzinfo=timezone.utc)

        assert n.next_scheduled == expected
        fire_at, payload = fake_scheduler.scheduled[n.id]
        assert fire_at == expected
        assert payload == {
            "title": "TRUEFAM DAILY REPORT",
            "body": "Scheduled notification ready",
            "data": {"scheduledId": n.id, "type": "daily_report"},
        }

    @pytest.mark.asyncio
    async def test_disabled_not_registered(self, manager, fake_scheduler):
        n = await manager.create(_daily(enabled=False))
        assert n.next_scheduled is not None
        assert fake_scheduler.scheduled == {}

    @pytest.mark.asyncio
    async def test_custom_persisted_but_not_registered(self, manager, fake_scheduler, store):
        n = await manager.create(ScheduledNotificationCreate(
            type="custom_alert",
            schedule=ScheduleConfig(type="custom", time="09:00"),
            template_id="t",
        ))
        assert n.next_scheduled is None
        assert n.id in store
        assert fake_scheduler.scheduled == {}

    @pytest.mark.asyncio
    async def test_persisted(self, manager, kv):
        n = await manager.create(_daily())
        reloaded = ScheduleStore(kv)
        assert await reloaded.load() == 1
        assert reloaded.require(n.id).next_scheduled == n.next_scheduled


class TestUpdate:
    @pytest.mark.asyncio
    async def test_schedule_change_recomputes_and_reregisters(self, manager, fake_scheduler):
        n = await manager.create(_daily("09:00"))
        updated = await manager.update(
            n.id,
            ScheduledNotificationUpdate(schedule=ScheduleConfig(type="daily", time="05:00")),
        )
        expected = datetime(2024, 1, 3, 5, 0, tzinfo=timezone.utc)
        assert updated.next_scheduled == expected
        assert fake_scheduler.cancelled == [n.id]
        assert fake_scheduler.scheduled[n.id][0] == expected

    @pytest.mark.asyncio
    async def test_disable_cancels(self, manager, fake_scheduler):
        n = await manager.create(_daily())
        await manager.update(n.id, ScheduledNotificationUpdate(enabled=False))
        assert n.id not in fake_scheduler.scheduled
        assert fake_scheduler.cancelled == [n.id]

    @pytest.mark.asyncio
    async def test_enable_registers(self, manager, fake_scheduler):
        n = await manager.create(_daily(enabled=False))
        await manager.update(n.id, ScheduledNotificationUpdate(enabled=True))
        assert n.id in fake_scheduler.scheduled
        assert fake_scheduler.cancelled == []

    @pytest.mark.asyncio
    async def test_unrelated_change_keeps_registration(self, manager, fake_scheduler):
        n = await manager.create(_daily())
        updated = await manager.update(n.id, ScheduledNotificationUpdate(recipients=["all"]))
        assert updated.recipients == ["all"]
        assert updated.next_scheduled == n.next_scheduled
        assert fake_scheduler.cancelled == []

    @pytest.mark.asyncio
    async def test_unknown_id(self, manager):
        with pytest.raises(ScheduleNotFoundError):
            await manager.update("scheduled_missing", ScheduledNotificationUpdate(enabled=False))

    @pytest.mark.asyncio
    async def test_invalid_merge_rejected(self, manager):
        n = await manager.create(_daily())
        with pytest.raises(ValidationError):
            await manager.update(n.id, ScheduledNotificationUpdate(template_id=None))


class TestDelete:
    @pytest.mark.asyncio
    async def test_cancels_then_removes(self, manager, fake_scheduler, store):
        n = await manager.create(_daily())
        await manager.delete(n.id)
        assert fake_scheduler.cancelled == [n.id]
        assert n.id not in store

    @pytest.mark.asyncio
    async def test_unknown_id(self, manager):
        with pytest.raises(ScheduleNotFoundError):
            await manager.delete("scheduled_missing")


class TestRecurrence:
    @pytest.mark.asyncio
    async def test_register_all_only_enabled(self, store, fake_scheduler, clock):
        seeding = ScheduleManager(store, scheduler=None, clock=clock)
        on = await seeding.create(_daily())
        await seeding.create(_daily(enabled=False))

        manager = ScheduleManager(store, scheduler=fake_scheduler, clock=clock)
        assert await manager.register_all() == 1
        assert list(fake_scheduler.scheduled) == [on.id]

    @pytest.mark.asyncio
    async def test_register_all_skips_missed_slots(self, store, kv, fake_scheduler, clock):
        seeding = ScheduleManager(store, scheduler=None, clock=clock)
        n = await seeding.create(_daily(time="07:00"))
        assert n.next_scheduled == datetime(2024, 1, 2, 7, 0, tzinfo=timezone.utc)

        # Down for three days; back on Friday 06:00.
        clock.advance(days=3)
        restarted_store = ScheduleStore(kv)
        await restarted_store.load()
        manager = ScheduleManager(restarted_store, scheduler=fake_scheduler, clock=clock)

        assert await manager.register_all() == 1
        expected = datetime(2024, 1, 5, 7, 0, tzinfo=timezone.utc)
        assert fake_scheduler.scheduled[n.id][0] == expected
        assert manager.get(n.id).next_scheduled == expected

        reloaded = ScheduleStore(kv)
        await reloaded.load()
        assert reloaded.get(n.id).next_scheduled == expected

    @pytest.mark.asyncio
    async def test_register_all_keeps_future_slot(self, store, fake_scheduler, clock):
        seeding = ScheduleManager(store, scheduler=None, clock=clock)
        n = await seeding.create(_daily(time="09:00"))

        manager = ScheduleManager(store, scheduler=fake_scheduler, clock=clock)
        await manager.register_all()

        assert fake_scheduler.scheduled[n.id][0] == n.next_scheduled

    @pytest.mark.asyncio
    async def test_handle_fired_rolls_forward(self, manager, fake_scheduler):
        n = await manager.create(_daily())
        fired_at = n.next_scheduled

        updated = await manager.handle_fired(n.id, fired_at)

        assert updated.last_sent == fired_at
        assert updated.next_scheduled == datetime(2024, 1, 3, 9, 0, tzinfo=timezone.utc)
        assert fake_scheduler.scheduled[n.id][0] == updated.next_scheduled

    @pytest.mark.asyncio
    async def test_handle_fired_unknown_is_ignored(self, manager):
        assert await manager.handle_fired("scheduled_gone") is None

    @pytest.mark.asyncio
    async def test_registration_failure_is_logged_not_raised(self, clock):
        class BrokenScheduler:
            async def schedule(self, notification_id, fire_at, payload):
                raise RuntimeError("scheduler offline")

            async def cancel(self, notification_id):
                raise RuntimeError("scheduler offline")

        manager = ScheduleManager(ScheduleStore(InMemoryKeyValueStore()), BrokenScheduler(), clock=clock)
        n = await manager.create(_daily())
        await manager.delete(n.id)
        assert manager.list() == []
