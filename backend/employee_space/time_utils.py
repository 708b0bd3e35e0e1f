from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone
from typing import Optional


# A single day's entry never exceeds 16 hours
MAX_DAILY_MINUTES = 16 * 60
QUARTER_HOUR = 15

_DURATION_RE = re.compile(r"^(-)?(\d{1,3}):(\d{2})$")


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)

    # Normalize to UTC-naive
    if dt.tzinfo is None:
        # interpret naive as UTC
        return dt.replace(tzinfo=None)

    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


# =============================================================================
# CALENDAR WEEKS
# =============================================================================

def parse_iso_date(value) -> Optional[date]:
    """
    Parse "YYYY-MM-DD" (or an ISO datetime) into a date.

    Returns None for empty or malformed input.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value).strip()
    if not s:
        return None
    try:
        return date.fromisoformat(s[:10])
    except ValueError:
        return None


def week_start(day: date) -> date:
    """Monday of the ISO week containing ``day``."""
    return day - timedelta(days=day.weekday())


def week_range(day: date) -> tuple[date, date]:
    """(Monday, Sunday) of the week containing ``day``."""
    start = week_start(day)
    return start, start + timedelta(days=6)


def week_dates(day: date) -> list[date]:
    start = week_start(day)
    return [start + timedelta(days=i) for i in range(7)]


# =============================================================================
# DURATIONS ("HH:MM" <-> minutes)
# =============================================================================

def parse_duration(value, *, limit: Optional[int] = MAX_DAILY_MINUTES, signed: bool = False) -> int:
    """
    Convert an "HH:MM" duration into integer minutes.

    Malformed, missing or out-of-range input yields 0 rather than an error:
    a bad value degrades to "no time logged". Minutes must be 0-59 and the
    total must not exceed ``limit`` (16:00 by default; ``None`` disables the
    ceiling). A leading "-" is only honoured when ``signed`` is set.
    """
    if value is None:
        return 0
    match = _DURATION_RE.match(str(value).strip())
    if not match:
        return 0

    negative, hours, minutes = match.group(1), int(match.group(2)), int(match.group(3))
    if minutes > 59:
        return 0
    if negative and not signed:
        return 0

    total = hours * 60 + minutes
    if limit is not None and total > limit:
        return 0
    return -total if negative else total


def format_duration(minutes: int) -> str:
    """Format minutes as zero-padded "HH:MM"; negatives get a leading "-"."""
    minutes = int(minutes)
    sign = "-" if minutes < 0 else ""
    hours, mins = divmod(abs(minutes), 60)
    return f"{sign}{hours:02d}:{mins:02d}"


def round_to_quarter_hour(minutes) -> int:
    """Round to the nearest 15-minute increment (halves round up)."""
    return int((minutes + QUARTER_HOUR / 2) // QUARTER_HOUR) * QUARTER_HOUR


def parse_time_input(value) -> int:
    """
    Parse free-form user input into quarter-hour rounded minutes.

    Accepts "HH:MM", decimal hours ("7.5") and whole hours ("8"). Anything
    unparseable or outside 0-16 hours becomes 0.
    """
    if value is None:
        return 0
    s = str(value).strip()
    if not s:
        return 0

    if ":" in s:
        minutes = parse_duration(s)
        return min(round_to_quarter_hour(minutes), MAX_DAILY_MINUTES)

    try:
        hours = float(s) if "." in s else int(s)
    except ValueError:
        return 0
    if hours < 0 or hours > 16:
        return 0
    return round_to_quarter_hour(hours * 60)


def is_duration(value) -> bool:
    """True for a well-formed unsigned "HH:MM" with minutes 0-59 (no hour ceiling)."""
    if value is None:
        return False
    match = _DURATION_RE.match(str(value).strip())
    return bool(match) and not match.group(1) and int(match.group(3)) <= 59
