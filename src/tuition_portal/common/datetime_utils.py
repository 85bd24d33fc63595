from __future__ import annotations

import calendar
from datetime import date, datetime, time


def now_local() -> datetime:
    """Current local time.

    Note: Wrapped so tests can patch/mocked easier.
    """
    return datetime.now()


def month_bounds(year: int, month: int) -> tuple[datetime, datetime]:
    """First instant and end-of-day on the last day of a calendar month."""
    last_day = calendar.monthrange(int(year), int(month))[1]
    start = datetime(int(year), int(month), 1)
    end = datetime.combine(date(int(year), int(month), last_day), time(23, 59, 59))
    return start, end


def day_bounds(day: date) -> tuple[datetime, datetime]:
    return datetime.combine(day, time.min), datetime.combine(day, time(23, 59, 59))


def iso(value: datetime | date | None) -> str | None:
    return value.isoformat() if value else None
