# todogpt/dates.py

from __future__ import annotations
from typing import Optional
from datetime import date, datetime, timedelta
import re

ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

_WEEKDAYS = {"mon": 0, "tue": 1, "wed": 2, "thu": 3, "fri": 4, "sat": 5, "sun": 6}
_MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}
_WEEKDAY_PATTERN = (
    r"(monday|mon|tuesday|tues|tue|wednesday|wed|thursday|thurs|thur|thu|"
    r"friday|fri|saturday|sat|sunday|sun)"
)
_MONTH_PATTERN = (
    r"(january|jan|february|feb|march|mar|april|apr|may|june|jun|july|jul|"
    r"august|aug|september|sept|sep|october|oct|november|nov|december|dec)"
)


def parse_iso_date(text: str) -> date:
    """Strict YYYY-MM-DD. Raises ValueError for anything else, including 2025-02-30."""
    value = (text or "").strip()
    if not ISO_DATE_RE.match(value):
        raise ValueError(f"Due date must be in YYYY-MM-DD format, got '{text}'")
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as exc:
        raise ValueError(f"'{text}' is not a valid calendar date") from exc


def parse_due_date(text: str, today: Optional[date] = None) -> date:
    """
    Parse a due date typed on the command line.

    Accepts YYYY-MM-DD plus a few phrases:
      today / tomorrow / next week / in 3 days / in 2 weeks
      friday (next occurrence, never today) / next monday (the one after that)
      feb 20 / February 20, 2026 / 3/14 / 3/14/2026
    Month-day forms without a year roll over to next year once they have passed.

    Raises ValueError when nothing matches.
    """
    ref = today or date.today()
    t = (text or "").strip().lower()
    if not t:
        raise ValueError("Empty due date")

    if ISO_DATE_RE.match(t):
        return parse_iso_date(t)

    if t == "today":
        return ref
    if t == "tomorrow":
        return ref + timedelta(days=1)
    if t == "next week":
        return ref + timedelta(days=7)

    m = re.fullmatch(r"in\s+(\d+)\s+(day|days|week|weeks)", t)
    if m:
        amount = int(m.group(1))
        if m.group(2).startswith("week"):
            amount *= 7
        return ref + timedelta(days=amount)

    m = re.fullmatch(r"(next\s+)?" + _WEEKDAY_PATTERN, t)
    if m:
        target = _next_weekday(ref, _WEEKDAYS[m.group(2)[:3]])
        if m.group(1):
            target += timedelta(days=7)
        return target

    m = re.fullmatch(_MONTH_PATTERN + r"\s+(\d{1,2})(?:st|nd|rd|th)?(?:,?\s*(\d{4}))?", t)
    if m:
        return _month_day(ref, _MONTHS[m.group(1)[:3]], int(m.group(2)), m.group(3))

    m = re.fullmatch(r"(\d{1,2})/(\d{1,2})(?:/(\d{2,4}))?", t)
    if m:
        return _month_day(ref, int(m.group(1)), int(m.group(2)), m.group(3))

    raise ValueError(
        f"Could not understand due date '{text}' (use YYYY-MM-DD, 'tomorrow', 'friday', ...)"
    )


def _next_weekday(d: date, target_weekday: int) -> date:
    days_ahead = (target_weekday - d.weekday()) % 7
    if days_ahead == 0:
        days_ahead = 7
    return d + timedelta(days=days_ahead)


def _month_day(ref: date, month: int, day: int, year_text: Optional[str]) -> date:
    try:
        if year_text:
            year = int(year_text)
            if year < 100:
                year += 2000
            return date(year, month, day)
        candidate = date(ref.year, month, day)
        if candidate < ref:
            candidate = date(ref.year + 1, month, day)
        return candidate
    except ValueError as exc:
        raise ValueError(f"Invalid date: month={month} day={day}") from exc
