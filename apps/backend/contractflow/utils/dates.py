"""
Calendar helpers

Due dates are plain ``date`` values (no time of day). The only conversion
from a wall-clock instant happens in ``local_today``, which always uses the
configured zone so "today" does not flip at UTC midnight.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime
from zoneinfo import ZoneInfo

from contractflow.core.config import settings


try:
    LOCAL_ZONE = ZoneInfo(settings.TIMEZONE)
except Exception:
    LOCAL_ZONE = ZoneInfo("America/Sao_Paulo")


def local_today(now: datetime | None = None) -> date:
    """Calendar date of ``now`` (default: current instant) in the configured zone.

    Naive datetimes are taken as UTC.
    """
    if now is None:
        return datetime.now(LOCAL_ZONE).date()
    if now.tzinfo is None:
        now = now.replace(tzinfo=ZoneInfo("UTC"))
    return now.astimezone(LOCAL_ZONE).date()


def now_local_naive() -> datetime:
    """Naive datetime in the configured zone, used for row timestamps."""
    return datetime.now(LOCAL_ZONE).replace(tzinfo=None)


def add_months(base: date, months: int, *, anchor_day: int | None = None) -> date:
    """Shift ``base`` by ``months`` calendar months.

    The day is ``anchor_day`` (default ``base.day``) clamped to the last day
    of the target month: Jan 31 + 1 month is Feb 28 (or 29), never Mar 3.
    """
    day = anchor_day if anchor_day is not None else base.day
    index = base.year * 12 + (base.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day, last_day))


def days_between(start: date, end: date) -> int:
    """Whole calendar days from ``start`` to ``end`` (negative when end is earlier)."""
    return (end - start).days
