"""
Utilities for timestamp parsing and HH:MM window arithmetic.
"""

from datetime import datetime

from dateutil import parser as dateparser


def parse_timestamp(value):
    """
    Parse a string into a datetime. If value is falsy or unparseable, return None.
    Accepts ISO-8601 (with or without offset) and the common "YYYY-MM-DD HH:MM" form.
    Offsets are kept, so "2025-11-30T12:00:00+08:00" comes back timezone-aware.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    try:
        return dateparser.parse(str(value))
    except (ValueError, OverflowError):
        return None


def time_to_minutes(value):
    """Convert "HH:MM" to minutes since midnight."""
    hours, minutes = str(value).split(":")
    return int(hours) * 60 + int(minutes)


def minutes_in_window(current, start, end):
    # windows that end at or before their start wrap past midnight (20:00-05:00)
    if end <= start:
        return current >= start or current < end
    return start <= current < end
