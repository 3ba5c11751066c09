"""
Date helpers

Deadlines are handled as day numbers (days since 1970-01-01) so that the
agenda never does calendar or timezone arithmetic.
"""

from datetime import date, datetime, timedelta
from typing import Optional

DATE_FORMAT = '%Y-%m-%d'
EPOCH = date(1970, 1, 1)


def parse_date(value: str) -> date:
    """
    Parse a YYYY-MM-DD string

    Raises:
        ValueError: if the string is not a valid date
    """
    return datetime.strptime(value.strip(), DATE_FORMAT).date()


def to_day_number(value: date) -> int:
    """Convert a date to its day number"""
    return (value - EPOCH).days


def from_day_number(day: int) -> date:
    """Convert a day number back to a date"""
    return EPOCH + timedelta(days=day)


def parse_day_number(value: str) -> int:
    """Parse a YYYY-MM-DD string straight into a day number"""
    return to_day_number(parse_date(value))


def format_day_number(day: Optional[int]) -> Optional[str]:
    """Render a day number as YYYY-MM-DD (None stays None)"""
    if day is None:
        return None
    return from_day_number(day).strftime(DATE_FORMAT)


def today_day_number(now: Optional[date] = None) -> int:
    """Day number of today (or of the given date)"""
    if now is None:
        now = date.today()
    return to_day_number(now)
