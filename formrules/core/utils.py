"""
Shared utility functions for the FormRules validation engine.
"""

from datetime import date, datetime
from typing import Any

from dateutil import parser as dateutil_parser


def parse_datetime(value: Any) -> datetime | None:
    """Parse a date/datetime string (or pass through a datetime/date).

    Returns None for empty, non-string, or unparseable input.
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if not value or not isinstance(value, str):
        return None

    try:
        return dateutil_parser.parse(value)
    except (ValueError, TypeError, OverflowError):
        return None


def is_number(value: Any) -> bool:
    """True for int/float values that are not booleans."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def to_number(value: Any) -> float | None:
    """Coerce a value to a number the way a loose comparison would.

    Numbers pass through, numeric strings are parsed (blank strings
    count as zero), everything else returns None.
    """
    if is_number(value):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return 0
        try:
            return float(stripped)
        except ValueError:
            return None
    return None


def is_empty(value: Any) -> bool:
    """None, blank strings, and empty collections are empty. 0 and False are not."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False
