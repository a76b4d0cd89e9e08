"""Time and datetime utilities.

The scheduling core works in naive clinic-local wall-clock time, because
business hours ("08:00-17:00, Monday-Friday") are a local-time policy.
"""

from datetime import date, datetime, time
from zoneinfo import ZoneInfo

from clinic_scheduling.core.config import settings


def clinic_now() -> datetime:
    """Get the current clinic-local datetime.

    Returns:
        Current naive datetime in the configured clinic timezone
    """
    return datetime.now(ZoneInfo(settings.clinic_timezone)).replace(tzinfo=None)


def to_clinic_time(dt: datetime) -> datetime:
    """Normalize a datetime into naive clinic-local time.

    Naive datetimes are assumed to already be clinic-local.

    Args:
        dt: Datetime to normalize

    Returns:
        Naive datetime in the clinic timezone
    """
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(ZoneInfo(settings.clinic_timezone)).replace(tzinfo=None)


def start_of_day(day: date) -> datetime:
    """Get midnight at the start of a date."""
    return datetime.combine(day, time.min)


def format_datetime(dt: datetime, fmt: str = "%Y-%m-%d %H:%M") -> str:
    """Format datetime for human-readable messages.

    Args:
        dt: Datetime to format
        fmt: Format string

    Returns:
        Formatted datetime string
    """
    return dt.strftime(fmt)
