"""
Local-time and age helpers shared by the generators.

All instants in the engine are UTC-aware; only reminder wall-clock times
and calendar ages are local, interpreted in settings.LOCAL_TIMEZONE.
"""
from __future__ import annotations

import calendar
from datetime import date, datetime, time, timezone, tzinfo
from zoneinfo import ZoneInfo

from careloop.core.config import settings


def local_zone() -> tzinfo:
    if settings.LOCAL_TIMEZONE.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(settings.LOCAL_TIMEZONE)


def local_date(instant: datetime) -> date:
    return instant.astimezone(local_zone()).date()


def local_instant(day: date, at: time) -> datetime:
    """Wall-clock `at` on `day` in the local zone, as a UTC instant."""
    return datetime.combine(day, at, tzinfo=local_zone()).astimezone(timezone.utc)


def age_in_months(birth_date: date, on: date) -> int:
    """
    Whole calendar months elapsed from birth_date to `on`.

    A month counts on its monthiversary; when the birth day does not exist
    in the current month (born on the 31st), the last day of the month
    counts instead.
    """
    months = (on.year - birth_date.year) * 12 + (on.month - birth_date.month)
    if on.day < birth_date.day:
        last_day = calendar.monthrange(on.year, on.month)[1]
        if not (on.day == last_day and birth_date.day > last_day):
            months -= 1
    return max(months, 0)
