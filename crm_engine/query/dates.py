"""
Relative date resolution.

Turns the symbolic window operators into concrete UTC instants. Every
function takes the reference instant explicitly; nothing here reads the
clock.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Any

from crm_engine.core.errors import InvalidValueError
from crm_engine.query.schemas import DateRange, Operator


def to_utc(value: Any) -> datetime:
    """Normalize a datetime, date or ISO-8601 string to an aware UTC datetime.

    Naive datetimes are taken to be UTC. Raises ValueError for anything else.
    """
    if isinstance(value, datetime):
        instant = value
    elif isinstance(value, date):
        instant = datetime.combine(value, time.min)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        instant = datetime.fromisoformat(text)
    else:
        raise ValueError(f"Not a date or datetime: {value!r}")
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def _midnight(day: date) -> datetime:
    return datetime(day.year, day.month, day.day, tzinfo=timezone.utc)


def this_week(now: datetime) -> DateRange:
    """Monday 00:00 of the ISO week containing ``now`` through the next Monday."""
    today = to_utc(now).date()
    start = _midnight(today - timedelta(days=today.weekday()))
    return DateRange(start=start, end=start + timedelta(days=7))


def this_month(now: datetime) -> DateRange:
    now = to_utc(now)
    start = datetime(now.year, now.month, 1, tzinfo=timezone.utc)
    if now.month == 12:
        end = datetime(now.year + 1, 1, 1, tzinfo=timezone.utc)
    else:
        end = datetime(now.year, now.month + 1, 1, tzinfo=timezone.utc)
    return DateRange(start=start, end=end)


def this_quarter(now: datetime) -> DateRange:
    now = to_utc(now)
    first_month = 3 * ((now.month - 1) // 3) + 1
    start = datetime(now.year, first_month, 1, tzinfo=timezone.utc)
    if first_month == 10:
        end = datetime(now.year + 1, 1, 1, tzinfo=timezone.utc)
    else:
        end = datetime(now.year, first_month + 3, 1, tzinfo=timezone.utc)
    return DateRange(start=start, end=end)


def parse_day_count(value: Any) -> int:
    """Validate the N of ``last_n_days``: a positive integer (numeric strings allowed)."""
    if isinstance(value, bool):
        raise InvalidValueError("last_n_days requires a positive integer", operator=Operator.LAST_N_DAYS.value)
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, int) or value <= 0:
        raise InvalidValueError(
            f"last_n_days requires a positive integer, got {value!r}",
            operator=Operator.LAST_N_DAYS.value,
        )
    return value


def last_n_days(days: Any, now: datetime) -> DateRange:
    """``[now - N days, now]``, both ends inclusive."""
    count = parse_day_count(days)
    now = to_utc(now)
    return DateRange(start=now - timedelta(days=count), end=now, end_inclusive=True)


def resolve_window(operator: Operator, value: Any, now: datetime) -> DateRange:
    """Resolve any relative window operator against ``now``."""
    if operator == Operator.THIS_WEEK:
        return this_week(now)
    if operator == Operator.THIS_MONTH:
        return this_month(now)
    if operator == Operator.THIS_QUARTER:
        return this_quarter(now)
    if operator == Operator.LAST_N_DAYS:
        return last_n_days(value, now)
    raise InvalidValueError(f"Operator '{operator.value}' is not a relative date window", operator=operator.value)
