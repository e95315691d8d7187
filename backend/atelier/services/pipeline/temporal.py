"""
Temporal Utilities

Pure functions over instants and calendar dates.

All day differences are calendar-day differences: both operands are
reduced to their date in the business timezone before subtracting, so
"days since" and "days remaining" never depend on the time of day.
Instants must be timezone-aware; naive values are read as UTC.
"""
import os
from datetime import date, datetime, timezone
from functools import lru_cache
from typing import Optional, Union
from zoneinfo import ZoneInfo

from dateutil.parser import isoparse


# =============================================================================
# CONFIGURATION
# =============================================================================

BUSINESS_TIMEZONE = os.getenv("ATELIER_TIMEZONE", "Asia/Kolkata")

MONTH_ABBREVIATIONS = [
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
]

Instant = Union[datetime, str]
CalendarDay = Union[date, datetime, str]


@lru_cache(maxsize=8)
def business_tz(name: Optional[str] = None) -> ZoneInfo:
    """Timezone that defines 'local midnight' for day arithmetic."""
    return ZoneInfo(name or BUSINESS_TIMEZONE)


# =============================================================================
# PARSING
# =============================================================================

def utcnow() -> datetime:
    """Current instant, timezone-aware UTC."""
    return datetime.now(timezone.utc)


def to_datetime(value: Instant) -> datetime:
    """Coerce an ISO string or datetime into an aware datetime."""
    if isinstance(value, str):
        value = isoparse(value)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def to_date(value: CalendarDay) -> date:
    """
    Coerce a value into a calendar date.

    Date-only strings ("2025-03-10") are taken literally. Instants are
    reduced to their date in the business timezone.
    """
    if isinstance(value, datetime):
        return local_date(value)
    if isinstance(value, date):
        return value
    text = value.strip()
    if len(text) == 10 and "T" not in text:
        return date.fromisoformat(text)
    return local_date(to_datetime(text))


def local_date(value: Instant) -> date:
    """Calendar date of an instant in the business timezone."""
    return to_datetime(value).astimezone(business_tz()).date()


# =============================================================================
# DAY ARITHMETIC
# =============================================================================

def days_between(a: CalendarDay, b: CalendarDay) -> int:
    """
    Whole calendar days from `a` to `b`.

    Negative when `b` is before `a`.
    """
    return (to_date(b) - to_date(a)).days


def relative_time_label(timestamp: Instant, now: Instant) -> str:
    """
    Human readable age of a timestamp.

    Examples: "just now", "5m ago", "2h ago", "Yesterday", "3d ago", "12 Jan"
    """
    then = to_datetime(timestamp)
    elapsed = to_datetime(now) - then
    seconds = elapsed.total_seconds()
    minutes = int(seconds // 60)
    hours = int(seconds // 3600)
    days = int(seconds // 86400)

    if minutes < 2:
        return "just now"
    if minutes < 60:
        return f"{minutes}m ago"
    if hours < 24:
        return f"{hours}h ago"
    if days == 1:
        return "Yesterday"
    if days < 30:
        return f"{days}d ago"
    return format_short_date(then)


# =============================================================================
# FORMATTING
# =============================================================================

def format_short_date(value: CalendarDay) -> str:
    """'12 Jan'"""
    d = to_date(value)
    return f"{d.day} {MONTH_ABBREVIATIONS[d.month - 1]}"


def format_date(value: CalendarDay) -> str:
    """'12 Jan 2025'"""
    d = to_date(value)
    return f"{d.day} {MONTH_ABBREVIATIONS[d.month - 1]} {d.year}"


def format_date_time(value: Instant) -> str:
    """'12 Jan 2025, 03:45 PM' in the business timezone."""
    local = to_datetime(value).astimezone(business_tz())
    return f"{format_date(local.date())}, {local.strftime('%I:%M %p')}"


def format_currency(amount: float) -> str:
    """Rupees with Indian digit grouping and no decimals: '₹1,25,000'."""
    rounded = int(round(amount))
    digits = str(abs(rounded))
    if len(digits) > 3:
        head, tail = digits[:-3], digits[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        digits = ",".join(groups + [tail])
    sign = "-" if rounded < 0 else ""
    return f"{sign}₹{digits}"
