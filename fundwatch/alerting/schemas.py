"""
Alert, Template & Schedule Schemas.

Defines alert rules (conditions + actions), notification templates,
schedule configs, scheduled notifications and the contribution records
the rules are evaluated against.
"""

from datetime import datetime
from enum import StrEnum
from typing import Annotated, Literal, Optional, TypeVar, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from fundwatch.clock import ensure_aware


# ── Enums ──────────────────────────────────────────────────────────────


class AlertKind(StrEnum):
    """Informational tag — the evaluator does not branch on it."""
    AMOUNT_THRESHOLD = "amount_threshold"
    TIME_BASED = "time_based"
    MEMBER_ACTIVITY = "member_activity"
    GOAL_PROGRESS = "goal_progress"
    INACTIVITY = "inactivity"


class AlertPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ConditionField(StrEnum):
    TOTAL_AMOUNT = "total_amount"
    CONTRIBUTION_COUNT = "contribution_count"
    AVERAGE_AMOUNT = "average_amount"
    UNIQUE_CONTRIBUTORS = "unique_contributors"
    PLATFORM_USAGE = "platform_usage"
    MEMBER_ACTIVITY = "member_activity"
    TIME_SINCE_LAST = "time_since_last"


class ConditionOperator(StrEnum):
    EQUALS = "equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    CONTAINS = "contains"
    BETWEEN = "between"         # inclusive on both ends


class ActionChannel(StrEnum):
    PUSH = "push"
    MESSAGING = "messaging"     # WhatsApp group
    WEBHOOK = "webhook"
    EMAIL = "email"


class TemplateCategory(StrEnum):
    CONTRIBUTION = "contribution"
    REPORT = "report"
    ALERT = "alert"
    REMINDER = "reminder"


class RecurrenceType(StrEnum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"


class NotificationType(StrEnum):
    DAILY_REPORT = "daily_report"
    WEEKLY_SUMMARY = "weekly_summary"
    MONTHLY_REPORT = "monthly_report"
    CUSTOM_ALERT = "custom_alert"


# ── Activity ───────────────────────────────────────────────────────────


class ContributionRecord(BaseModel):
    """A single contribution as returned by the activity source."""
    id: str
    member_id: str
    member_name: str = ""
    amount: float
    platform: str = ""
    date: datetime

    @field_validator("date")
    @classmethod
    def _aware(cls, v: datetime) -> datetime:
        return ensure_aware(v)


# ── Conditions ─────────────────────────────────────────────────────────


class ValueRange(BaseModel):
    """Payload for the `between` operator."""
    min: float
    max: float

    @model_validator(mode="after")
    def _ordered(self) -> "ValueRange":
        if self.min > self.max:
            raise ValueError(f"range min ({self.min}) is greater than max ({self.max})")
        return self


ConditionValue = Union[ValueRange, bool, int, float, str]


class AlertCondition(BaseModel):
    """
    One comparison against a metric derived from the activity window.

    `target` narrows platform_usage / member_activity to a platform name or
    member id. When it is absent the filter falls back to `value`.
    """
    field: ConditionField
    operator: ConditionOperator
    value: ConditionValue
    timeframe_hours: Optional[float] = Field(default=None, gt=0)
    target: Optional[str] = None

    @model_validator(mode="after")
    def _value_fits_operator(self) -> "AlertCondition":
        if self.operator == ConditionOperator.BETWEEN:
            if not isinstance(self.value, ValueRange):
                raise ValueError("'between' requires a {min, max} value")
        elif self.operator in (ConditionOperator.GREATER_THAN, ConditionOperator.LESS_THAN):
            if isinstance(self.value, bool) or not isinstance(self.value, (int, float)):
                raise ValueError(f"'{self.operator.value}' requires a numeric value")
        return self


# ── Actions ────────────────────────────────────────────────────────────


class _ActionBase(BaseModel):
    template_id: str
    recipients: list[str] = Field(default_factory=list)


class PushAction(_ActionBase):
    channel: Literal["push"] = "push"


class MessagingAction(_ActionBase):
    channel: Literal["messaging"] = "messaging"


class WebhookAction(_ActionBase):
    channel: Literal["webhook"] = "webhook"
    webhook_url: str

    @field_validator("webhook_url")
    @classmethod
    def _http_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("webhook_url must be an http(s) URL")
        return v


class EmailAction(_ActionBase):
    channel: Literal["email"] = "email"
    recipients: list[str] = Field(min_length=1)


AlertAction = Annotated[
    Union[PushAction, MessagingAction, WebhookAction, EmailAction],
    Field(discriminator="channel"),
]


# ── Schedule ───────────────────────────────────────────────────────────


class ScheduleConfig(BaseModel):
    """
    Recurrence at a fixed time of day.

    days: weekdays 0-6 (Sunday = 0) for weekly, month days 1-31 for monthly.
    timezone is carried as metadata only; arithmetic uses the caller's clock.
    """
    type: RecurrenceType
    time: str = Field(pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    days: Optional[list[int]] = None
    timezone: str = "UTC"
    enabled: bool = True

    @model_validator(mode="after")
    def _days_fit_recurrence(self) -> "ScheduleConfig":
        if self.type == RecurrenceType.WEEKLY:
            bounds = (0, 6)
        elif self.type == RecurrenceType.MONTHLY:
            bounds = (1, 31)
        else:
            return self

        if not self.days:
            raise ValueError(f"{self.type.value} schedules require at least one day")
        lo, hi = bounds
        bad = [d for d in self.days if d < lo or d > hi]
        if bad:
            raise ValueError(f"{self.type.value} days must be within {lo}-{hi}, got {bad}")
        self.days = sorted(set(self.days))
        return self

    @property
    def hour(self) -> int:
        return int(self.time.split(":")[0])

    @property
    def minute(self) -> int:
        return int(self.time.split(":")[1])


# ── Alert Rule ─────────────────────────────────────────────────────────


class AlertRule(BaseModel):
    """
    A user-defined alert rule.

    All conditions must hold (logical AND); an empty list means the rule
    fires on every tick once its cooldown has elapsed.
    """
    id: str
    name: str
    enabled: bool = True
    kind: AlertKind = AlertKind.AMOUNT_THRESHOLD
    conditions: list[AlertCondition] = Field(default_factory=list)
    actions: list[AlertAction] = Field(default_factory=list)
    schedule: Optional[ScheduleConfig] = None   # reserved, not used by the monitor
    cooldown_minutes: Optional[int] = Field(default=None, ge=0)
    priority: AlertPriority = AlertPriority.MEDIUM
    created_at: datetime
    last_triggered: Optional[datetime] = None


class AlertRuleCreate(BaseModel):
    """Request to create a new alert rule."""
    name: str = Field(min_length=1)
    enabled: bool = True
    kind: AlertKind = AlertKind.AMOUNT_THRESHOLD
    conditions: list[AlertCondition] = Field(default_factory=list)
    actions: list[AlertAction] = Field(default_factory=list)
    schedule: Optional[ScheduleConfig] = None
    cooldown_minutes: Optional[int] = Field(default=None, ge=0)
    priority: AlertPriority = AlertPriority.MEDIUM


class AlertRuleUpdate(BaseModel):
    """Partial update — only fields that are set are applied."""
    name: Optional[str] = Field(default=None, min_length=1)
    enabled: Optional[bool] = None
    kind: Optional[AlertKind] = None
    conditions: Optional[list[AlertCondition]] = None
    actions: Optional[list[AlertAction]] = None
    schedule: Optional[ScheduleConfig] = None
    cooldown_minutes: Optional[int] = Field(default=None, ge=0)
    priority: Optional[AlertPriority] = None


class AlertHistoryEntry(BaseModel):
    rule_id: str
    rule_name: str
    triggered_at: datetime
    priority: AlertPriority


class ActionResult(BaseModel):
    """Outcome of one action of a fired rule."""
    channel: ActionChannel
    template_id: str
    success: bool
    detail: str = ""


# ── Templates ──────────────────────────────────────────────────────────


class NotificationTemplate(BaseModel):
    id: str
    name: str
    category: TemplateCategory = TemplateCategory.ALERT
    subject: str = ""
    body: str
    variables: list[str] = Field(default_factory=list)
    created_at: datetime


class TemplateCreate(BaseModel):
    name: str = Field(min_length=1)
    category: TemplateCategory = TemplateCategory.ALERT
    subject: str = ""
    body: str
    variables: list[str] = Field(default_factory=list)


class TemplateUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    category: Optional[TemplateCategory] = None
    subject: Optional[str] = None
    body: Optional[str] = None
    variables: Optional[list[str]] = None


# ── Scheduled notifications ────────────────────────────────────────────


class ScheduledNotification(BaseModel):
    id: str
    type: NotificationType
    schedule: ScheduleConfig
    template_id: str
    recipients: list[str] = Field(default_factory=list)
    enabled: bool = True
    last_sent: Optional[datetime] = None
    next_scheduled: Optional[datetime] = None   # None when the recurrence has no arithmetic


class ScheduledNotificationCreate(BaseModel):
    type: NotificationType
    schedule: ScheduleConfig
    template_id: str
    recipients: list[str] = Field(default_factory=list)
    enabled: bool = True


class ScheduledNotificationUpdate(BaseModel):
    type: Optional[NotificationType] = None
    schedule: Optional[ScheduleConfig] = None
    template_id: Optional[str] = None
    recipients: Optional[list[str]] = None
    enabled: Optional[bool] = None


# ── Helpers ────────────────────────────────────────────────────────────

_M = TypeVar("_M", bound=BaseModel)


def apply_update(record: _M, update: BaseModel) -> _M:
    """Merge the explicitly-set fields of `update` into `record` and re-validate."""
    merged = record.model_dump()
    merged.update(update.model_dump(exclude_unset=True))
    return type(record).model_validate(merged)
