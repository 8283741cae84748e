"""
Month keys and duration formatting.

Shifts, exports and expense reports are all selected by month. A month is
passed around as a "YYYY-MM" key and split into (year, month) where needed.
"""

from __future__ import annotations

import calendar
import re
from datetime import date

from django.utils import timezone

MONTH_KEY_RE = re.compile(r"^(\d{4})-(\d{2})$")

MONTH_ABBREVIATIONS = [
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
]


def parse_month(value: str) -> tuple[int, int]:
    """Split a "YYYY-MM" key into (year, month)."""
    match = MONTH_KEY_RE.match(value or "")
    if not match:
        raise ValueError(f"Invalid month '{value}', expected YYYY-MM")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month '{value}', month must be 01-12")
    return year, month


def month_key(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def current_month_key() -> str:
    today = timezone.localdate()
    return month_key(today.year, today.month)


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last day of the month."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    """Move (year, month) by delta months, e.g. -1 for the previous month."""
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def expense_period(key: str) -> str:
    """Display label for a report month: "2026-02" -> "Feb, 2026"."""
    year, month = parse_month(key)
    return f"{MONTH_ABBREVIATIONS[month - 1]}, {year}"


def format_minutes(minutes: int) -> str:
    """Minutes as H:MM, e.g. 545 -> "9:05"."""
    minutes = max(0, int(minutes))
    return f"{minutes // 60}:{minutes % 60:02d}"


def format_duration(minutes: int) -> str:
    """Minutes as "Xh Ym"."""
    minutes = max(0, int(minutes))
    return f"{minutes // 60}h {minutes % 60}m"
