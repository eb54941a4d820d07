"""
Calendar helpers for projecting instants into a participant's local day.

All instants stored by the application are naive UTC datetimes. Anything
naive that reaches these helpers is treated as UTC.
"""
from datetime import date, datetime, time, timedelta, timezone as dt_timezone

import pytz

from services.errors import InvalidTimezone


def utcnow():
    """Current instant as a naive UTC datetime (the storage convention)."""
    return datetime.now(dt_timezone.utc).replace(tzinfo=None)


def get_timezone(timezone_name):
    """Return the pytz timezone for an IANA identifier or raise InvalidTimezone."""
    if not timezone_name:
        raise InvalidTimezone(timezone_name)
    try:
        return pytz.timezone(timezone_name)
    except pytz.UnknownTimeZoneError:
        raise InvalidTimezone(timezone_name)


def is_valid_timezone(timezone_name):
    try:
        get_timezone(timezone_name)
    except InvalidTimezone:
        return False
    return True


def as_utc(instant):
    """Return an aware UTC datetime for a naive (UTC) or aware instant."""
    if instant.tzinfo is None:
        return pytz.utc.localize(instant)
    return instant.astimezone(pytz.utc)


def to_naive_utc(instant):
    return as_utc(instant).replace(tzinfo=None)


def ensure_datetime(value):
    """Convert the shapes a raw SQL driver may hand back into a naive UTC datetime"""
    if value is None:
        return None

    if isinstance(value, datetime):
        return to_naive_utc(value)

    if isinstance(value, (int, float)):
        # Unix epoch seconds
        return datetime.fromtimestamp(value, dt_timezone.utc).replace(tzinfo=None)

    if isinstance(value, str):
        text = value.strip().replace('Z', '+00:00')
        try:
            return ensure_datetime(float(text))
        except ValueError:
            pass
        return to_naive_utc(datetime.fromisoformat(text))

    raise TypeError(f"Cannot interpret {value!r} as a datetime")


def local_date(instant, timezone_name):
    """
    Project an instant into the civil date of the given IANA timezone.

    Example: 2025-01-23T03:00:00Z in America/New_York -> date(2025, 1, 22)
    """
    tz = get_timezone(timezone_name)
    return as_utc(instant).astimezone(tz).date()


def date_range(start, end):
    """Inclusive, ascending list of dates from start to end; empty if start > end."""
    days = []
    current = start
    while current <= end:
        days.append(current)
        current += timedelta(days=1)
    return days


def parse_date(value):
    """Accept a date or a YYYY-MM-DD string"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def local_day_bounds_utc(day, timezone_name):
    """
    UTC instants for 00:00:00 and 23:59:59 of a local calendar day.

    Example: 2025-01-23, America/New_York -> 2025-01-23T05:00:00Z, 2025-01-24T04:59:59Z
    """
    tz = get_timezone(timezone_name)
    day = parse_date(day)
    start = tz.localize(datetime.combine(day, time(0, 0, 0)))
    end = tz.localize(datetime.combine(day, time(23, 59, 59)))
    return start.astimezone(pytz.utc), end.astimezone(pytz.utc)


def format_utc(instant):
    """ISO-8601 with a Z suffix, the form the summary API expects"""
    return as_utc(instant).strftime('%Y-%m-%dT%H:%M:%SZ')
