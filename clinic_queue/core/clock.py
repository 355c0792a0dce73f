"""
Time helpers anchored on the clinic's local calendar.
"""

import calendar
from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from clinic_queue.config import get_settings


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive timestamps (some drivers drop tzinfo on read)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def clinic_zone() -> ZoneInfo:
    return ZoneInfo(get_settings().clinic_timezone)


def clinic_today(now: Optional[datetime] = None) -> date:
    """Calendar date at the clinic for the given instant."""
    now = as_utc(now) if now else utc_now()
    return now.astimezone(clinic_zone()).date()


def last_day_of_month(day: date) -> date:
    return day.replace(day=calendar.monthrange(day.year, day.month)[1])
