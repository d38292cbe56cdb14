"""
Condition Evaluator — derives activity metrics and compares them.

Pipeline per condition:
1. Pull contribution records inside the condition's lookback window
2. Derive one scalar for the condition's field
3. Compare against the condition value with the condition operator

Unknown fields, unknown operators and values that do not fit the operator
all evaluate to False (fail-closed).
"""

from datetime import datetime
from typing import Any, Callable, Optional, Protocol, Sequence

import structlog

from fundwatch.alerting.schemas import (
    AlertCondition,
    ConditionField,
    ConditionOperator,
    ContributionRecord,
    ValueRange,
)
from fundwatch.clock import Clock, system_clock
from fundwatch.exceptions import EvaluationError

logger = structlog.get_logger(__name__)


class ActivityReader(Protocol):
    """Source of contribution activity."""

    async def get_recent_contributions(self, hours: float) -> list[ContributionRecord]:
        """Return records newer than now - hours."""
        ...


# ── Metric derivation ──────────────────────────────────────────────────


def latest_record(records: Sequence[ContributionRecord]) -> Optional[ContributionRecord]:
    if not records:
        return None
    return max(records, key=lambda r: r.date)


def _filter_key(condition: AlertCondition) -> str:
    if condition.target is not None:
        return condition.target
    return str(condition.value)


def _total(records: Sequence[ContributionRecord], condition: AlertCondition, now: datetime) -> float:
    return sum(r.amount for r in records)


def _count(records: Sequence[ContributionRecord], condition: AlertCondition, now: datetime) -> int:
    return len(records)


def _average(records: Sequence[ContributionRecord], condition: AlertCondition, now: datetime) -> float:
    if not records:
        return 0
    return sum(r.amount for r in records) / len(records)


def _unique(records: Sequence[ContributionRecord], condition: AlertCondition, now: datetime) -> int:
    return len({r.member_id for r in records})


def _platform(records: Sequence[ContributionRecord], condition: AlertCondition, now: datetime) -> int:
    platform = _filter_key(condition)
    return sum(1 for r in records if r.platform == platform)


def _member(records: Sequence[ContributionRecord], condition: AlertCondition, now: datetime) -> int:
    member_id = _filter_key(condition)
    return sum(1 for r in records if r.member_id == member_id)


def _hours_since_last(records: Sequence[ContributionRecord], condition: AlertCondition, now: datetime) -> float:
    latest = latest_record(records)
    return (now - latest.date).total_seconds() / 3600.0


_DERIVERS: dict[str, Callable[[Sequence[ContributionRecord], AlertCondition, datetime], Any]] = {
    ConditionField.TOTAL_AMOUNT: _total,
    ConditionField.CONTRIBUTION_COUNT: _count,
    ConditionField.AVERAGE_AMOUNT: _average,
    ConditionField.UNIQUE_CONTRIBUTORS: _unique,
    ConditionField.PLATFORM_USAGE: _platform,
    ConditionField.MEMBER_ACTIVITY: _member,
    ConditionField.TIME_SINCE_LAST: _hours_since_last,
}


# ── Comparison ─────────────────────────────────────────────────────────


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def stringify(value: Any) -> str:
    """String form used by `contains`; whole floats render without a trailing .0."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def compare_values(actual: Any, operator: str, expected: Any) -> bool:
    """Apply a condition operator. Anything that does not fit returns False."""
    if operator == ConditionOperator.EQUALS:
        if isinstance(actual, bool) != isinstance(expected, bool):
            return False
        if _is_number(actual) != _is_number(expected):
            return False
        return actual == expected
    elif operator == ConditionOperator.GREATER_THAN:
        return _is_number(actual) and _is_number(expected) and actual > expected
    elif operator == ConditionOperator.LESS_THAN:
        return _is_number(actual) and _is_number(expected) and actual < expected
    elif operator == ConditionOperator.CONTAINS:
        if isinstance(expected, ValueRange):
            return False
        return stringify(expected).lower() in stringify(actual).lower()
    elif operator == ConditionOperator.BETWEEN:
        if not isinstance(expected, ValueRange) or not _is_number(actual):
            return False
        return expected.min <= actual <= expected.max
    return False


def evaluate_condition(
    condition: AlertCondition,
    records: Sequence[ContributionRecord],
    now: datetime,
) -> bool:
    """Evaluate one condition against an already-fetched activity window."""
    derive = _DERIVERS.get(condition.field)
    if derive is None:
        logger.debug("condition_unknown_field", field=str(condition.field))
        return False

    if condition.field == ConditionField.TIME_SINCE_LAST and not records:
        return True

    actual = derive(records, condition, now)
    return compare_values(actual, condition.operator, condition.value)


# ── Evaluator ──────────────────────────────────────────────────────────


class ConditionEvaluator:
    """
    Evaluates conditions against live activity.

    Each condition pulls its own window, so conditions with different
    lookbacks on the same rule see different record sets.
    """

    def __init__(
        self,
        reader: ActivityReader,
        default_lookback_hours: float = 24.0,
        clock: Clock = system_clock,
    ):
        self._reader = reader
        self._default_lookback_hours = default_lookback_hours
        self._clock = clock

    async def evaluate(self, condition: AlertCondition, now: Optional[datetime] = None) -> bool:
        now = now or self._clock()
        hours = condition.timeframe_hours or self._default_lookback_hours
        try:
            records = await self._reader.get_recent_contributions(hours)
        except Exception as e:
            raise EvaluationError(f"activity source unavailable: {e}") from e
        return evaluate_condition(condition, records, now)

    async def evaluate_all(
        self,
        conditions: Sequence[AlertCondition],
        now: Optional[datetime] = None,
    ) -> bool:
        """Logical AND, short-circuiting on the first false condition."""
        now = now or self._clock()
        for condition in conditions:
            if not await self.evaluate(condition, now):
                return False
        return True
