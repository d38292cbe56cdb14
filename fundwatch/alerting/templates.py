"""
Notification Templates.

Renders `{placeholder}` bodies against a snapshot of recent activity.

Substitution is literal and global: every occurrence of a known
placeholder is replaced, unknown placeholders are left verbatim.
"""

from datetime import datetime
from typing import Optional, Sequence

from pydantic import BaseModel

from fundwatch.alerting.evaluator import latest_record, stringify
from fundwatch.alerting.schemas import (
    AlertRule,
    ContributionRecord,
    NotificationTemplate,
    TemplateCategory,
    TemplateCreate,
)

DEFAULT_TIMESTAMP_FORMAT = "%m/%d/%Y, %I:%M:%S %p"


class ActivitySnapshot(BaseModel):
    """Aggregates of the template window (last 24h by default)."""
    total_amount: float = 0.0
    contribution_count: int = 0
    unique_contributors: int = 0
    latest_amount: Optional[float] = None
    latest_member: Optional[str] = None

    @classmethod
    def from_records(cls, records: Sequence[ContributionRecord]) -> "ActivitySnapshot":
        latest = latest_record(records)
        return cls(
            total_amount=sum(r.amount for r in records),
            contribution_count=len(records),
            unique_contributors=len({r.member_id for r in records}),
            latest_amount=latest.amount if latest else None,
            latest_member=(latest.member_name or latest.member_id) if latest else None,
        )

    @property
    def latest_description(self) -> str:
        if self.latest_amount is None:
            return "None"
        return f"${stringify(self.latest_amount)} from {self.latest_member}"


def fallback_message(rule: AlertRule) -> str:
    return f"Alert triggered: {rule.name}"


def build_variables(
    snapshot: ActivitySnapshot,
    rule: AlertRule,
    now: datetime,
    timestamp_format: str = DEFAULT_TIMESTAMP_FORMAT,
) -> dict[str, str]:
    return {
        "rule_name": rule.name,
        "timestamp": now.strftime(timestamp_format),
        "total_amount": f"{snapshot.total_amount:.2f}",
        "contribution_count": str(snapshot.contribution_count),
        "unique_contributors": str(snapshot.unique_contributors),
        "latest_contribution": snapshot.latest_description,
    }


def render_template(
    template: Optional[NotificationTemplate],
    snapshot: ActivitySnapshot,
    rule: AlertRule,
    now: datetime,
    timestamp_format: str = DEFAULT_TIMESTAMP_FORMAT,
) -> str:
    """
    Render a template body.

    Args:
        template: Template to render; None yields the generic fallback
        snapshot: Activity aggregates for the variable values
        rule: The rule that fired
        now: Render instant ({timestamp})
        timestamp_format: strftime format for {timestamp}

    Returns:
        Rendered message
    """
    if template is None:
        return fallback_message(rule)

    message = template.body
    for name, value in build_variables(snapshot, rule, now, timestamp_format).items():
        message = message.replace("{" + name + "}", value)
    return message


# ── Default templates ──────────────────────────────────────────────────

DEFAULT_TEMPLATES: list[TemplateCreate] = [
    TemplateCreate(
        name="High Amount Alert",
        category=TemplateCategory.ALERT,
        subject="Large Contribution Received",
        body=(
            "🚨 HIGH AMOUNT ALERT\n\n"
            "Rule: {rule_name}\n"
            "Time: {timestamp}\n\n"
            "Latest: {latest_contribution}\n"
            "Total Today: ${total_amount}\n"
            "Contributions: {contribution_count}"
        ),
        variables=["rule_name", "timestamp", "latest_contribution", "total_amount", "contribution_count"],
    ),
    TemplateCreate(
        name="Daily Summary",
        category=TemplateCategory.REPORT,
        subject="Daily Contribution Summary",
        body=(
            "📊 DAILY SUMMARY\n\n"
            "Total Amount: ${total_amount}\n"
            "Contributions: {contribution_count}\n"
            "Unique Contributors: {unique_contributors}\n\n"
            "Generated: {timestamp}"
        ),
        variables=["total_amount", "contribution_count", "unique_contributors", "timestamp"],
    ),
    TemplateCreate(
        name="Inactivity Alert",
        category=TemplateCategory.ALERT,
        subject="No Recent Contributions",
        body=(
            "⚠️ INACTIVITY ALERT\n\n"
            "No contributions received recently.\n"
            "Last contribution: {latest_contribution}\n\n"
            "Time: {timestamp}"
        ),
        variables=["latest_contribution", "timestamp"],
    ),
    TemplateCreate(
        name="Goal Progress",
        category=TemplateCategory.ALERT,
        subject="Goal Progress Update",
        body=(
            "🎯 GOAL PROGRESS\n\n"
            "Current Total: ${total_amount}\n"
            "Contributions: {contribution_count}\n"
            "Active Members: {unique_contributors}\n\n"
            "Updated: {timestamp}"
        ),
        variables=["total_amount", "contribution_count", "unique_contributors", "timestamp"],
    ),
]
