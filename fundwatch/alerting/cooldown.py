"""
Alert Cooldown — Prevent the same rule from firing in quick succession.

State is in-memory (process lifetime). At start-up it is seeded from each
rule's persisted last_triggered timestamp so a restart does not re-arm
every rule at once.
"""

from datetime import datetime
from typing import Iterable, Optional

import structlog

from fundwatch.alerting.schemas import AlertRule

logger = structlog.get_logger(__name__)


class CooldownTracker:
    """Tracks rule_id → last fire time and enforces per-rule cooldowns."""

    def __init__(self):
        self._last_fired: dict[str, datetime] = {}

    def should_suppress(self, rule: AlertRule, now: datetime) -> tuple[bool, str]:
        """
        Check whether a rule is still cooling down.

        A rule without a cooldown (None or 0) is never suppressed.

        Returns:
            (should_suppress: bool, reason: str)
        """
        last_time = self._last_fired.get(rule.id)
        if last_time is None or not rule.cooldown_minutes:
            return False, ""

        elapsed = (now - last_time).total_seconds() / 60.0
        if elapsed < rule.cooldown_minutes:
            remaining = rule.cooldown_minutes - elapsed
            reason = (
                f"Cooldown active: {remaining:.0f}m remaining "
                f"(rule '{rule.name}' fired {elapsed:.0f}m ago)"
            )
            logger.debug(
                "rule_suppressed_cooldown",
                rule_id=rule.id,
                elapsed_minutes=round(elapsed, 1),
                cooldown_minutes=rule.cooldown_minutes,
            )
            return True, reason

        return False, ""

    def record_fired(self, rule_id: str, now: datetime) -> None:
        self._last_fired[rule_id] = now

    def last_fired(self, rule_id: str) -> Optional[datetime]:
        return self._last_fired.get(rule_id)

    def discard(self, rule_id: str) -> None:
        """Forget a rule (deactivated or deleted) so it restarts cold."""
        self._last_fired.pop(rule_id, None)

    def seed(self, rules: Iterable[AlertRule]) -> int:
        """Load last_triggered timestamps of enabled rules. Returns count seeded."""
        seeded = 0
        for rule in rules:
            if rule.enabled and rule.last_triggered is not None:
                self._last_fired[rule.id] = rule.last_triggered
                seeded += 1
        return seeded

    def __contains__(self, rule_id: str) -> bool:
        return rule_id in self._last_fired

    def reset(self) -> None:
        """Reset all state (for testing)."""
        self._last_fired.clear()
