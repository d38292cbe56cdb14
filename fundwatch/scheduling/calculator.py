"""
Schedule Calculator — next fire time for a recurring notification.

The next fire time is the smallest datetime strictly after `now` whose
time of day is the configured HH:MM and whose day is allowed by the
recurrence. Arithmetic happens in `now`'s timezone; a local fixed offset
(as produced by the system clock) is re-resolved per day so DST changes
keep the configured wall-clock time.
"""

import calendar
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterator, Optional

import structlog

from fundwatch.alerting.schemas import RecurrenceType, ScheduleConfig

logger = structlog.get_logger(__name__)


def sunday_based_weekday(day: date) -> int:
    """0 = Sunday ... 6 = Saturday."""
    return (day.weekday() + 1) % 7


def _is_local_fixed_offset(now: datetime) -> bool:
    """True for the fixed-offset tzinfo `datetime.astimezone()` attaches to local time."""
    if not isinstance(now.tzinfo, timezone):
        return False
    local = now.astimezone()
    return now.utcoffset() == local.utcoffset() and now.tzname() == local.tzname()


def _at(day: date, config: ScheduleConfig, now: datetime) -> datetime:
    wall = datetime.combine(day, time(config.hour, config.minute))
    if _is_local_fixed_offset(now):
        # A fixed offset is only valid for `now`; localize HH:MM on its own day
        # so a DST change in between keeps the wall-clock time.
        return wall.astimezone()
    return wall.replace(tzinfo=now.tzinfo)


def _month_days(year: int, month: int, days: list[int]) -> list[date]:
    """Configured month days for (year, month), clamped to the month's length."""
    last = calendar.monthrange(year, month)[1]
    return sorted({date(year, month, min(d, last)) for d in days})


def _months_from(start: date) -> Iterator[tuple[int, int]]:
    year, month = start.year, start.month
    while True:
        yield year, month
        month += 1
        if month > 12:
            year, month = year + 1, 1


def next_fire_time(config: ScheduleConfig, now: datetime) -> Optional[datetime]:
    """
    Compute the next fire time.

    Args:
        config: Recurrence definition
        now: Reference instant (timezone-aware)

    Returns:
        Next fire datetime, or None for recurrences without arithmetic (custom)
    """
    today = now.date()

    if config.type == RecurrenceType.DAILY:
        candidate = _at(today, config, now)
        if candidate <= now:
            candidate = _at(today + timedelta(days=1), config, now)
        return candidate

    if config.type == RecurrenceType.WEEKLY:
        allowed = set(config.days or [])
        for offset in range(8):
            day = today + timedelta(days=offset)
            if sunday_based_weekday(day) in allowed:
                candidate = _at(day, config, now)
                if candidate > now:
                    return candidate
        return None

    if config.type == RecurrenceType.MONTHLY:
        if not config.days:
            return None
        months = _months_from(today)
        # Clamping guarantees a candidate in every month, so two months suffice.
        for _ in range(2):
            year, month = next(months)
            for day in _month_days(year, month, config.days):
                candidate = _at(day, config, now)
                if candidate > now:
                    return candidate
        return None

    logger.info("schedule_not_computable", recurrence=config.type.value)
    return None
