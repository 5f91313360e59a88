import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]
WEEKDAY_NAMES = [
    "Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday",
]

# "19 February 2026" (anything after the year is ignored)
_STRICT_DATE_RE = re.compile(r"^(\d{1,2})\s+([A-Za-z]+)\s+(\d{4})")

# Lenient formats tried in order when the strict pattern does not match
_FALLBACK_FORMATS = [
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%B %d, %Y",
    "%B %d %Y",
    "%b %d, %Y",
    "%b %d %Y",
    "%d %b %Y",
    "%d %B, %Y",
    "%d-%b-%Y",
    "%A, %B %d, %Y",
    "%a, %d %b %Y",
    "%a %b %d %Y",
]


@dataclass(frozen=True)
class DateParts:
    day_name: str
    date_number: str
    month: str
    year: str


def _parts_from(value: date) -> DateParts:
    return DateParts(
        day_name=WEEKDAY_NAMES[value.isoweekday() % 7],
        date_number=str(value.day),
        month=MONTH_NAMES[value.month - 1],
        year=str(value.year),
    )


def _parse_strict(text: str) -> Optional[date]:
    """Day, full month name, year. Pure calendar math, no timezone involved"""
    match = _STRICT_DATE_RE.match(text)
    if not match:
        return None
    month_name = match.group(2).lower()
    month_index = next(
        (i for i, name in enumerate(MONTH_NAMES) if name.lower() == month_name), -1
    )
    if month_index < 0:
        return None
    try:
        return date(int(match.group(3)), month_index + 1, int(match.group(1)))
    except ValueError:
        return None


def _parse_lenient(text: str) -> Optional[date]:
    for fmt in _FALLBACK_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    try:
        # ISO timestamps; naive values are taken as local time
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


def parse_date_parts(text: str) -> Optional[DateParts]:
    """Split a loosely formatted date into weekday/day/month/year strings.

    Returns None when the text is not a calendar date; callers then drop
    every date-derived text element instead of failing.
    """
    if not text or not isinstance(text, str):
        return None
    trimmed = text.strip()
    parsed = _parse_strict(trimmed) or _parse_lenient(trimmed)
    if parsed is None:
        return None
    return _parts_from(parsed)
