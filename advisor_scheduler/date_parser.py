"""
Free-text date and time preference parsing.

Understands the phrasings people actually use when asked "when works for
you?": relative days ("today", "tomorrow 2pm"), month names in either
order ("Jan 6, 2pm", "6 January 2026"), weekday names ("next Monday") and
bare parts of the day ("afternoon").

Usage:
    parsed = parse_date_time("tomorrow afternoon", reference=date(2026, 10, 19))
    # ParsedDateTime(date=date(2026, 10, 20), time='afternoon')
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional

_MONTHS: dict[str, int] = {
    "january": 1, "jan": 1,
    "february": 2, "feb": 2,
    "march": 3, "mar": 3,
    "april": 4, "apr": 4,
    "may": 5,
    "june": 6, "jun": 6,
    "july": 7, "jul": 7,
    "august": 8, "aug": 8,
    "september": 9, "sept": 9, "sep": 9,
    "october": 10, "oct": 10,
    "november": 11, "nov": 11,
    "december": 12, "dec": 12,
}

_WEEKDAYS: dict[str, int] = {
    "monday": 0, "tuesday": 1, "wednesday": 2, "thursday": 3,
    "friday": 4, "saturday": 5, "sunday": 6,
}

DAY_PARTS = ("morning", "afternoon", "evening")

_MONTH_ALT = "|".join(sorted(_MONTHS, key=len, reverse=True))
_MONTH_DAY = re.compile(rf"\b({_MONTH_ALT})\.?\s+(\d{{1,2}})(?:st|nd|rd|th)?\b")
_DAY_MONTH = re.compile(rf"\b(\d{{1,2}})(?:st|nd|rd|th)?\s+(?:of\s+)?({_MONTH_ALT})\b")
_YEAR = re.compile(r"\b((?:19|20)\d{2})\b")
_CLOCK_12H = re.compile(r"\b(\d{1,2})(?::([0-5]\d))?\s*(am|pm)\b")
_CLOCK_24H = re.compile(r"\b([01]?\d|2[0-3]):([0-5]\d)\b")


@dataclass(frozen=True)
class ParsedDateTime:
    """A date and/or time preference extracted from free text."""

    date: Optional[date] = None
    time: Optional[str] = None


def parse_date_time(text: str, reference: date) -> Optional[ParsedDateTime]:
    """Extract a date and time preference from ``text``.

    ``reference`` is "today" in the business timezone. Returns None when
    neither a date nor a time could be found.
    """
    if not text or not text.strip():
        return None

    lower = text.lower()
    found_date = _parse_date(lower, reference)
    found_time = _parse_clock(lower) or _parse_day_part(lower)

    if found_date is None and found_time is None:
        return None
    return ParsedDateTime(date=found_date, time=found_time)


def _parse_date(lower: str, reference: date) -> Optional[date]:
    if "day after tomorrow" in lower:
        return reference + timedelta(days=2)
    if re.search(r"\btomorrow\b", lower):
        return reference + timedelta(days=1)
    if re.search(r"\btoday\b", lower):
        return reference

    month_day = _parse_month_day(lower, reference)
    if month_day is not None:
        return month_day

    for name, weekday in _WEEKDAYS.items():
        if re.search(rf"\b{name}\b", lower):
            days_ahead = (weekday - reference.weekday()) % 7 or 7
            return reference + timedelta(days=days_ahead)
    return None


def _parse_month_day(lower: str, reference: date) -> Optional[date]:
    match = _MONTH_DAY.search(lower)
    if match:
        month, day = _MONTHS[match.group(1)], int(match.group(2))
    else:
        match = _DAY_MONTH.search(lower)
        if not match:
            return None
        day, month = int(match.group(1)), _MONTHS[match.group(2)]

    year_match = _YEAR.search(lower)
    year = int(year_match.group(1)) if year_match else reference.year
    try:
        parsed = date(year, month, day)
    except ValueError:
        return None
    if year_match is None and parsed < reference:
        try:
            parsed = date(year + 1, month, day)
        except ValueError:
            return None
    return parsed


def _parse_clock(lower: str) -> Optional[str]:
    match = _CLOCK_12H.search(lower)
    if match:
        hour = int(match.group(1))
        if not 1 <= hour <= 12:
            return None
        minutes = match.group(2)
        period = match.group(3).upper()
        return f"{hour}:{minutes} {period}" if minutes else f"{hour} {period}"
    match = _CLOCK_24H.search(lower)
    if match:
        return f"{int(match.group(1)):02d}:{match.group(2)}"
    return None


def _parse_day_part(lower: str) -> Optional[str]:
    for part in DAY_PARTS:
        if part in lower:
            return part
    return None


def clock_hour(time_preference: str) -> Optional[int]:
    """24-hour clock hour of an explicit time like '2 PM' or '14:00'."""
    lower = time_preference.lower()
    match = _CLOCK_12H.search(lower)
    if match:
        hour = int(match.group(1)) % 12
        return hour + 12 if match.group(3) == "pm" else hour
    match = _CLOCK_24H.search(lower)
    if match:
        return int(match.group(1))
    return None


def format_slot_time(moment: datetime) -> str:
    """Render a slot start like 'Tuesday, October 20, 2026 2:00 PM'."""
    hour12 = moment.hour % 12 or 12
    period = "AM" if moment.hour < 12 else "PM"
    return (
        f"{moment:%A}, {moment:%B} {moment.day}, {moment.year} "
        f"{hour12}:{moment.minute:02d} {period}"
    )
