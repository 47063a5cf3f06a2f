"""
Calendar-day parsing shared by the directory, reconciliation and routes.

Attendance has day granularity. Clients send anything from "2024-01-05" to
"2024-01-05T10:00:00Z"; all of them must land on the same calendar day so
that resubmissions collide on one ledger row.
"""

import re
from datetime import date, datetime, timedelta
from typing import Optional, Tuple

from attendance_tracker.exceptions import InvalidDate

_DAY_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}")


def parse_calendar_day(value) -> date:
    """
    Reduce a date, datetime or ISO 8601 string to its calendar day.

    The day is taken as written: a UTC offset or trailing "Z" is dropped
    without converting, so "2024-01-05T23:30:00-05:00" is 2024-01-05.

    Raises InvalidDate for anything that is not a real calendar date.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not _DAY_PREFIX.match(value.strip()):
        raise InvalidDate("Invalid date: {}".format(value))

    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        raise InvalidDate("Invalid date: {}".format(value))


def parse_iso_day(value: str) -> date:
    """Strict YYYY-MM-DD, used for path and query parameters."""
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise InvalidDate("Invalid date: {}. Expected YYYY-MM-DD".format(value))


def parse_optional_day(value: Optional[str]) -> Optional[date]:
    if value is None or value == "":
        return None
    return parse_iso_day(value)


def window_for_last_days(days: int, today: date) -> Tuple[date, date]:
    """
    Inclusive (start, end) window covering the last `days` days.

    Today counts as one of them: days=7 on 2024-01-10 gives
    (2024-01-04, 2024-01-10).
    """
    if days < 1:
        raise ValueError("days must be at least 1")
    return today - timedelta(days=days - 1), today
