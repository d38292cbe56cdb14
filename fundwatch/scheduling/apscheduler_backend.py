"""
APScheduler Notification Scheduler.

In-process implementation of the "fire this payload at T" primitive: one
DateTrigger job per scheduled notification, keyed by its id. When a job
fires, the `on_fire` callback receives the id and payload.
"""

from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

import structlog
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger

logger = structlog.get_logger(__name__)

FireCallback = Callable[[str, dict[str, Any]], Awaitable[None]]


class ApschedulerNotificationScheduler:
    """One-shot DateTrigger jobs; re-registering an id replaces its job."""

    def __init__(
        self,
        on_fire: Optional[FireCallback] = None,
        scheduler: Optional[AsyncIOScheduler] = None,
        misfire_grace_seconds: int = 300,
    ):
        self.on_fire = on_fire
        self._scheduler = scheduler or AsyncIOScheduler()
        self._misfire_grace_seconds = misfire_grace_seconds

    def start(self) -> None:
        if not self._scheduler.running:
            self._scheduler.start()
            logger.info("notification_scheduler_started")

    def shutdown(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("notification_scheduler_stopped")

    async def schedule(self, notification_id: str, fire_at: datetime, payload: dict[str, Any]) -> None:
        self._scheduler.add_job(
            self._fire,
            DateTrigger(run_date=fire_at),
            id=notification_id,
            args=[notification_id, payload],
            replace_existing=True,
            misfire_grace_time=self._misfire_grace_seconds,
        )

    async def cancel(self, notification_id: str) -> None:
        try:
            self._scheduler.remove_job(notification_id)
        except JobLookupError:
            pass

    def scheduled_ids(self) -> list[str]:
        return sorted(job.id for job in self._scheduler.get_jobs())

    async def _fire(self, notification_id: str, payload: dict[str, Any]) -> None:
        logger.info("scheduled_notification_fired", notification_id=notification_id)
        if self.on_fire is None:
            return
        try:
            await self.on_fire(notification_id, payload)
        except Exception as e:
            logger.error(
                "scheduled_notification_delivery_failed",
                notification_id=notification_id,
                error=str(e),
            )
