"""
Schedule Manager — CRUD for recurring notifications plus registration.

Every mutation recomputes `next_scheduled` where needed, persists the
collection and keeps the external scheduler in step:
- create: register if enabled and computable
- update: re-register on schedule change, register/cancel on enable/disable
- delete: cancel, then remove
"""

from datetime import datetime
from typing import Any, Optional, Protocol

import structlog
from pydantic import ValidationError as PydanticValidationError

from fundwatch import metrics
from fundwatch.alerting.schemas import (
    ScheduledNotification,
    ScheduledNotificationCreate,
    ScheduledNotificationUpdate,
    apply_update,
)
from fundwatch.clock import Clock, system_clock
from fundwatch.exceptions import ValidationError
from fundwatch.scheduling.calculator import next_fire_time
from fundwatch.storage.stores import ScheduleStore

logger = structlog.get_logger(__name__)


class NotificationScheduler(Protocol):
    """'Fire this payload at T' primitive, keyed by notification id."""

    async def schedule(self, notification_id: str, fire_at: datetime, payload: dict[str, Any]) -> None:
        ...

    async def cancel(self, notification_id: str) -> None:
        ...


def is_registrable(notification: ScheduledNotification) -> bool:
    return (
        notification.enabled
        and notification.schedule.enabled
        and notification.next_scheduled is not None
    )


class ScheduleManager:
    """Owns scheduled notifications and their external registrations."""

    def __init__(
        self,
        store: ScheduleStore,
        scheduler: Optional[NotificationScheduler] = None,
        clock: Clock = system_clock,
        app_name: str = "TRUEFAM",
    ):
        self._store = store
        self._scheduler = scheduler
        self._clock = clock
        self._app_name = app_name

    # ── Queries ──────────────────────────────────────────────────────

    def list(self) -> list[ScheduledNotification]:
        return self._store.list()

    def get(self, notification_id: str) -> ScheduledNotification:
        return self._store.require(notification_id)

    def build_payload(self, notification: ScheduledNotification) -> dict[str, Any]:
        return {
            "title": f"{self._app_name} {notification.type.value.replace('_', ' ').upper()}",
            "body": "Scheduled notification ready",
            "data": {
                "scheduledId": notification.id,
                "type": notification.type.value,
            },
        }

    # ── Mutations ────────────────────────────────────────────────────

    async def create(
        self,
        data: ScheduledNotificationCreate,
        now: Optional[datetime] = None,
    ) -> ScheduledNotification:
        now = now or self._clock()
        notification = ScheduledNotification(
            id=self._store.new_id(),
            next_scheduled=next_fire_time(data.schedule, now),
            **data.model_dump(),
        )
        await self._store.add(notification)
        logger.info(
            "scheduled_notification_created",
            notification_id=notification.id,
            type=notification.type.value,
            next_scheduled=notification.next_scheduled.isoformat() if notification.next_scheduled else None,
        )

        if is_registrable(notification):
            await self._register(notification)
        return notification

    async def update(
        self,
        notification_id: str,
        update: ScheduledNotificationUpdate,
        now: Optional[datetime] = None,
    ) -> ScheduledNotification:
        now = now or self._clock()
        current = self._store.require(notification_id)
        try:
            updated = apply_update(current, update)
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e, "scheduled notification") from e

        schedule_changed = "schedule" in update.model_fields_set and update.schedule is not None
        if schedule_changed:
            updated = updated.model_copy(update={"next_scheduled": next_fire_time(updated.schedule, now)})

        was_registered = is_registrable(current)
        should_register = is_registrable(updated)

        if schedule_changed or was_registered != should_register:
            if was_registered:
                await self._cancel(notification_id)
            if should_register:
                await self._register(updated)

        await self._store.replace(updated)
        logger.info(
            "scheduled_notification_updated",
            notification_id=notification_id,
            schedule_changed=schedule_changed,
            registered=should_register,
        )
        return updated

    async def delete(self, notification_id: str) -> None:
        self._store.require(notification_id)
        await self._cancel(notification_id)
        await self._store.remove(notification_id)
        logger.info("scheduled_notification_deleted", notification_id=notification_id)

    async def register_all(self, now: Optional[datetime] = None) -> int:
        """
        Register every enabled notification (start-up). Returns count registered.

        A stored `next_scheduled` that is no longer in the future (the process
        was down when it was due) is recomputed from `now` and persisted first.
        """
        now = now or self._clock()
        registered = 0
        for notification in self._store.list():
            if (
                notification.next_scheduled is not None
                and notification.next_scheduled <= now
            ):
                notification = await self._roll_forward(notification, now)
            if is_registrable(notification):
                await self._register(notification)
                registered += 1
        logger.info("scheduled_notifications_registered", count=registered)
        return registered

    async def _roll_forward(
        self,
        notification: ScheduledNotification,
        now: datetime,
    ) -> ScheduledNotification:
        updated = notification.model_copy(update={
            "next_scheduled": next_fire_time(notification.schedule, now),
        })
        await self._store.replace(updated)
        logger.info(
            "schedule_missed_slot_skipped",
            notification_id=notification.id,
            missed=notification.next_scheduled.isoformat(),
            next_scheduled=updated.next_scheduled.isoformat() if updated.next_scheduled else None,
        )
        return updated

    async def handle_fired(
        self,
        notification_id: str,
        fired_at: Optional[datetime] = None,
    ) -> Optional[ScheduledNotification]:
        """
        Record a delivery and roll the recurrence forward.

        Returns the updated notification, or None if it no longer exists.
        """
        current = self._store.get(notification_id)
        if current is None:
            logger.warning("scheduled_fired_unknown", notification_id=notification_id)
            return None

        fired_at = fired_at or self._clock()
        updated = current.model_copy(update={
            "last_sent": fired_at,
            "next_scheduled": next_fire_time(current.schedule, fired_at),
        })
        await self._store.replace(updated)

        if is_registrable(updated):
            await self._register(updated)
        return updated

    # ── Scheduler calls ──────────────────────────────────────────────

    async def _register(self, notification: ScheduledNotification) -> None:
        if self._scheduler is None or notification.next_scheduled is None:
            return
        try:
            await self._scheduler.schedule(
                notification.id,
                notification.next_scheduled,
                self.build_payload(notification),
            )
        except Exception as e:
            logger.error(
                "schedule_registration_failed",
                notification_id=notification.id,
                error=str(e),
            )
            return
        metrics.increment("schedules_registered_total")
        logger.debug(
            "schedule_registered",
            notification_id=notification.id,
            fire_at=notification.next_scheduled.isoformat(),
        )

    async def _cancel(self, notification_id: str) -> None:
        if self._scheduler is None:
            return
        try:
            await self._scheduler.cancel(notification_id)
        except Exception as e:
            logger.error(
                "schedule_cancel_failed",
                notification_id=notification_id,
                error=str(e),
            )
            return
        metrics.increment("schedules_cancelled_total")
