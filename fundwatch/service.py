"""
Notification Service — the engine's single entry point.

Owns the stores, monitor, dispatcher and schedule manager, all built from
injected collaborators. Lifecycle:
    service = build_service(settings)
    await service.initialize()   # load, seed, arm rules, register schedules, start monitor
    ...
    await service.shutdown()
"""

from datetime import datetime
from typing import Any, Optional, Sequence, TypeVar

import structlog
from pydantic import BaseModel, ValidationError as PydanticValidationError

from fundwatch.activity import HttpActivityReader
from fundwatch.alerting.cooldown import CooldownTracker
from fundwatch.alerting.dispatcher import ActionDispatcher
from fundwatch.alerting.evaluator import ActivityReader, ConditionEvaluator
from fundwatch.alerting.monitor import RuleMonitor
from fundwatch.alerting.schemas import (
    AlertHistoryEntry,
    AlertRule,
    AlertRuleCreate,
    AlertRuleUpdate,
    NotificationTemplate,
    ScheduledNotification,
    ScheduledNotificationCreate,
    ScheduledNotificationUpdate,
    TemplateCreate,
    TemplateUpdate,
    apply_update,
)
from fundwatch.alerting.templates import DEFAULT_TEMPLATES
from fundwatch.channels.base import EmailSender, MessagingSender, PushSender, WebhookPoster
from fundwatch.channels.email import SmtpEmailSender
from fundwatch.channels.push import ExpoPushSender
from fundwatch.channels.webhook import HttpWebhookPoster
from fundwatch.channels.whatsapp import TwilioConfig, TwilioWhatsAppSender
from fundwatch.clock import Clock, system_clock
from fundwatch.config import Settings, settings as default_settings
from fundwatch.exceptions import ValidationError
from fundwatch.scheduling.apscheduler_backend import ApschedulerNotificationScheduler
from fundwatch.scheduling.manager import NotificationScheduler, ScheduleManager
from fundwatch.storage.kv import (
    FileKeyValueStore,
    InMemoryKeyValueStore,
    KeyValueStore,
    RedisKeyValueStore,
)
from fundwatch.storage.stores import RuleStore, ScheduleStore, TemplateStore

logger = structlog.get_logger(__name__)

_M = TypeVar("_M", bound=BaseModel)


def _coerce(model: type[_M], data: Any, resource: str) -> _M:
    """Accept a model instance or a raw dict; pydantic errors become ValidationError."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(e, resource) from e


class NotificationService:
    """Alert rules, templates and scheduled notifications behind one object."""

    def __init__(
        self,
        rules: RuleStore,
        templates: TemplateStore,
        schedules: ScheduleStore,
        reader: ActivityReader,
        push: Optional[PushSender] = None,
        messaging: Optional[MessagingSender] = None,
        webhook: Optional[WebhookPoster] = None,
        email: Optional[EmailSender] = None,
        scheduler: Optional[NotificationScheduler] = None,
        settings: Settings = default_settings,
        clock: Clock = system_clock,
        resources: Sequence[Any] = (),
    ):
        self.rules = rules
        self.templates = templates
        self.schedules = schedules
        self.settings = settings
        self._clock = clock
        self._push = push
        self._scheduler = scheduler
        self._resources = list(resources)
        self._initialized = False

        self.evaluator = ConditionEvaluator(
            reader,
            default_lookback_hours=settings.default_lookback_hours,
            clock=clock,
        )
        self.dispatcher = ActionDispatcher(
            templates,
            reader,
            push=push,
            messaging=messaging,
            webhook=webhook,
            email=email,
            clock=clock,
            template_window_hours=settings.template_window_hours,
            timestamp_format=settings.timestamp_format,
        )
        self.monitor = RuleMonitor(
            rules,
            self.evaluator,
            self.dispatcher,
            cooldowns=CooldownTracker(),
            clock=clock,
            interval_seconds=settings.monitor_interval_seconds,
        )
        self.schedule_manager = ScheduleManager(
            schedules,
            scheduler=scheduler,
            clock=clock,
            app_name=settings.app_name,
        )

    @property
    def initialized(self) -> bool:
        return self._initialized

    # ── Lifecycle ────────────────────────────────────────────────────

    async def initialize(self, start_monitor: Optional[bool] = None) -> None:
        """Load state, seed defaults, arm enabled rules and register schedules."""
        if self._initialized:
            return

        await self.rules.load()
        await self.templates.load()
        await self.schedules.load()

        if self.settings.seed_default_templates and len(self.templates) == 0:
            for template in DEFAULT_TEMPLATES:
                await self.create_template(template)
            logger.info("default_templates_seeded", count=len(DEFAULT_TEMPLATES))

        seeded = self.monitor.cooldowns.seed(self.rules.list())
        for rule in self.rules.enabled():
            self.monitor.activate(rule.id)

        if isinstance(self._scheduler, ApschedulerNotificationScheduler):
            self._scheduler.start()
        registered = await self.schedule_manager.register_all()

        if start_monitor is None:
            start_monitor = self.settings.monitor_enabled
        if start_monitor:
            self.monitor.start()

        self._initialized = True
        logger.info(
            "notification_service_initialized",
            rules=len(self.rules),
            active_rules=len(self.monitor.active_rule_ids),
            cooldowns_seeded=seeded,
            templates=len(self.templates),
            schedules_registered=registered,
        )

    async def shutdown(self) -> None:
        self.monitor.stop()
        if isinstance(self._scheduler, ApschedulerNotificationScheduler):
            self._scheduler.shutdown()
        for resource in self._resources:
            close = getattr(resource, "close", None)
            if close is not None:
                await close()
        self._initialized = False
        logger.info("notification_service_stopped")

    # ── Alert rules ──────────────────────────────────────────────────

    def list_rules(self) -> list[AlertRule]:
        return self.rules.list()

    def get_rule(self, rule_id: str) -> AlertRule:
        return self.rules.require(rule_id)

    async def create_rule(self, data: AlertRuleCreate | dict) -> AlertRule:
        data = _coerce(AlertRuleCreate, data, "alert rule")
        try:
            rule = AlertRule.model_validate({
                **data.model_dump(),
                "id": self.rules.new_id(),
                "created_at": self._clock(),
            })
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e, "alert rule") from e

        await self.rules.add(rule)
        if rule.enabled:
            self.monitor.activate(rule.id)
        logger.info("alert_rule_created", rule_id=rule.id, rule_name=rule.name, enabled=rule.enabled)
        return rule

    async def update_rule(self, rule_id: str, update: AlertRuleUpdate | dict) -> AlertRule:
        update = _coerce(AlertRuleUpdate, update, "alert rule update")
        current = self.rules.require(rule_id)
        try:
            updated = apply_update(current, update)
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e, "alert rule") from e

        await self.rules.replace(updated)
        if updated.enabled and not self.monitor.is_active(rule_id):
            self.monitor.activate(rule_id)
        elif not updated.enabled:
            self.monitor.deactivate(rule_id)
        logger.info("alert_rule_updated", rule_id=rule_id, enabled=updated.enabled)
        return updated

    async def delete_rule(self, rule_id: str) -> None:
        self.rules.require(rule_id)
        self.monitor.deactivate(rule_id)
        await self.rules.remove(rule_id)
        logger.info("alert_rule_deleted", rule_id=rule_id)

    async def test_rule(self, rule_id: str) -> bool:
        return await self.monitor.test_rule(rule_id)

    def get_alert_history(self, limit: int = 50) -> list[AlertHistoryEntry]:
        """Most recently fired rules first (one entry per rule: its last trigger)."""
        fired = [r for r in self.rules.list() if r.last_triggered is not None]
        fired.sort(key=lambda r: r.last_triggered, reverse=True)
        return [
            AlertHistoryEntry(
                rule_id=r.id,
                rule_name=r.name,
                triggered_at=r.last_triggered,
                priority=r.priority,
            )
            for r in fired[:limit]
        ]

    # ── Templates ────────────────────────────────────────────────────

    def list_templates(self) -> list[NotificationTemplate]:
        return self.templates.list()

    def get_template(self, template_id: str) -> NotificationTemplate:
        return self.templates.require(template_id)

    async def create_template(self, data: TemplateCreate | dict) -> NotificationTemplate:
        data = _coerce(TemplateCreate, data, "template")
        template = NotificationTemplate(
            id=self.templates.new_id(),
            created_at=self._clock(),
            **data.model_dump(),
        )
        await self.templates.add(template)
        logger.info("template_created", template_id=template.id, name=template.name)
        return template

    async def update_template(self, template_id: str, update: TemplateUpdate | dict) -> NotificationTemplate:
        update = _coerce(TemplateUpdate, update, "template update")
        current = self.templates.require(template_id)
        try:
            updated = apply_update(current, update)
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e, "template") from e
        await self.templates.replace(updated)
        logger.info("template_updated", template_id=template_id)
        return updated

    async def delete_template(self, template_id: str) -> None:
        """Rules and schedules referencing it fall back to the default message."""
        await self.templates.remove(template_id)
        logger.info("template_deleted", template_id=template_id)

    # ── Scheduled notifications ──────────────────────────────────────

    def list_schedules(self) -> list[ScheduledNotification]:
        return self.schedule_manager.list()

    def get_schedule(self, notification_id: str) -> ScheduledNotification:
        return self.schedule_manager.get(notification_id)

    async def create_schedule(self, data: ScheduledNotificationCreate | dict) -> ScheduledNotification:
        data = _coerce(ScheduledNotificationCreate, data, "scheduled notification")
        return await self.schedule_manager.create(data)

    async def update_schedule(
        self,
        notification_id: str,
        update: ScheduledNotificationUpdate | dict,
    ) -> ScheduledNotification:
        update = _coerce(ScheduledNotificationUpdate, update, "scheduled notification update")
        return await self.schedule_manager.update(notification_id, update)

    async def delete_schedule(self, notification_id: str) -> None:
        await self.schedule_manager.delete(notification_id)

    async def deliver_scheduled(
        self,
        notification_id: str,
        payload: dict[str, Any],
        fired_at: Optional[datetime] = None,
    ) -> Optional[ScheduledNotification]:
        """Scheduler callback: push the payload, then roll the recurrence forward."""
        if self._push is not None:
            try:
                await self._push.send(
                    title=payload.get("title", ""),
                    body=payload.get("body", ""),
                    data=payload.get("data"),
                )
            except Exception as e:
                logger.error(
                    "scheduled_push_failed",
                    notification_id=notification_id,
                    error=str(e),
                )
        else:
            logger.warning("scheduled_push_skipped", notification_id=notification_id, reason="no push sender")
        return await self.schedule_manager.handle_fired(notification_id, fired_at)


# ── Wiring from settings ─────────────────────────────────────────────────


def build_kv_store(settings: Settings) -> KeyValueStore:
    backend = settings.store_backend.lower()
    if backend == "memory":
        return InMemoryKeyValueStore()
    if backend == "file":
        return FileKeyValueStore(settings.store_path)
    if backend == "redis":
        return RedisKeyValueStore(settings.redis_url, key_prefix=settings.store_key_prefix)
    raise ValueError(f"Unknown STORE_BACKEND: {settings.store_backend!r}")


def build_service(settings: Settings = default_settings, clock: Clock = system_clock) -> NotificationService:
    """Construct the service with the reference adapters configured in `settings`."""
    kv = build_kv_store(settings)
    reader = HttpActivityReader(
        settings.activity_api_url,
        api_key=settings.activity_api_key,
        timeout=settings.activity_timeout_seconds,
        clock=clock,
    )
    push = (
        ExpoPushSender(settings.expo_push_tokens, url=settings.expo_push_url)
        if settings.expo_push_tokens else None
    )
    messaging = (
        TwilioWhatsAppSender(TwilioConfig.from_settings(settings))
        if settings.twilio_configured else None
    )
    webhook = HttpWebhookPoster(timeout=settings.webhook_timeout_seconds)
    email = SmtpEmailSender.from_settings(settings) if settings.smtp_configured else None
    scheduler = ApschedulerNotificationScheduler()

    service = NotificationService(
        RuleStore(kv),
        TemplateStore(kv),
        ScheduleStore(kv),
        reader,
        push=push,
        messaging=messaging,
        webhook=webhook,
        email=email,
        scheduler=scheduler,
        settings=settings,
        clock=clock,
        resources=[r for r in (reader, push, messaging, webhook, kv) if r is not None],
    )
    scheduler.on_fire = service.deliver_scheduled

    logger.info(
        "notification_service_built",
        store_backend=settings.store_backend,
        push=push is not None,
        messaging=messaging is not None,
        email=email is not None,
    )
    return service
