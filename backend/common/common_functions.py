"""Reusable date and number helpers."""

import calendar
from datetime import datetime, timezone
import math
from typing import Any, Optional
from uuid import uuid4


SECONDS_PER_DAY = 86400


def utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(timezone.utc)


def new_id(prefix: str) -> str:
    """Generate a prefixed unique identifier."""
    return "{0}_{1}".format(prefix, uuid4().hex[:16])


def as_int(value: Any, default: int = 0) -> int:
    """Convert value to int with fallback."""
    try:
        if value is None:
            return int(default)
        return int(float(value))
    except (TypeError, ValueError):
        return int(default)


def add_months(value: datetime, months: int) -> datetime:
    """Shift `value` by calendar months, clamping the day to the target month."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def whole_days_between(start: datetime, end: datetime) -> int:
    """Return floor((end - start) / 1 day), never negative."""
    seconds = (end - start).total_seconds()
    if seconds <= 0:
        return 0
    return int(seconds // SECONDS_PER_DAY)


def days_until(moment: Optional[datetime], now: datetime) -> int:
    """Return whole days left until `moment`, rounded up, never negative."""
    if moment is None:
        return 0
    seconds = (moment - now).total_seconds()
    if seconds <= 0:
        return 0
    return int(math.ceil(seconds / SECONDS_PER_DAY))


def percentage(part: float, whole: float) -> float:
    """Return part/whole as a percentage rounded to 2 decimals."""
    if not whole:
        return 0.0
    return round(part * 100.0 / whole, 2)
