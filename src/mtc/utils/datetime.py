"""Calendar-date utilities for mtc.

mtc only schedules by calendar date and weekday, so everything here works on
``datetime.date`` in the local timezone of the machine running the command.
"""

from datetime import date, datetime, timedelta
from typing import Iterator, Optional

from ..errors import InvalidInput


DATE_FORMAT = "%Y-%m-%d"


def today() -> date:
    """Return the current local calendar date."""
    return datetime.now().date()


def parse_date(date_str: str, date_format: str = DATE_FORMAT) -> date:
    """Parse a calendar date string.

    Args:
        date_str: Date string to parse
        date_format: Format string for parsing (default: YYYY-MM-DD)

    Returns:
        The parsed date

    Raises:
        InvalidInput: If the string is not a valid date in the given format
    """
    try:
        return datetime.strptime(date_str.strip(), date_format).date()
    except (ValueError, AttributeError):
        raise InvalidInput(
            f"Cannot parse '{date_str}' to a date (expected {date_format}).",
            field_name="date",
            value=date_str,
        )


def to_date_string(value: Optional[date]) -> Optional[str]:
    """Convert a date to its ISO string, passing None through."""
    if value is None:
        return None
    return value.isoformat()


def next_date_for_weekday(weekday: int, start: date) -> date:
    """Return the first date on or after ``start`` falling on ``weekday`` (0=Monday)."""
    return start + timedelta(days=(weekday - start.weekday()) % 7)


def week_start(day: date, first_day_of_week: int = 0) -> date:
    """Return the first day of the week containing ``day``."""
    return day - timedelta(days=(day.weekday() - first_day_of_week) % 7)


def days_between(start: date, end: date) -> Iterator[date]:
    """Yield every date from ``start`` to ``end`` inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)
