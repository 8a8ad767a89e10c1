"""
Date and time helpers.

All timestamps are stored as naive UTC datetimes.
"""

import math
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, Union

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Union[datetime, date]) -> datetime:
    """Normalize a date or (possibly aware) datetime to naive UTC."""
    if not isinstance(value, datetime):
        return datetime.combine(value, time.min)
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def days_between(start: datetime, end: datetime) -> float:
    return (end - start) / timedelta(days=1)


def count_nights(check_in: datetime, check_out: datetime) -> int:
    """Number of nights, a partial day counting as a full night."""
    return math.ceil(days_between(check_in, check_out))


def month_key(year: int, month: int) -> str:
    return f"{int(year):04d}-{int(month):02d}"


def start_of_day(value: datetime) -> datetime:
    return datetime.combine(value.date(), time.min)
