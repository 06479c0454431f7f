from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from config import get_settings


@dataclass(frozen=True)
class Period:
    slug: str
    start: date
    end: date


def local_today() -> date:
    settings = get_settings()
    tz = ZoneInfo(settings.timezone)
    return datetime.now(tz).date()


def local_midnight_utc(day: date) -> datetime:
    """Start of ``day`` in the configured timezone, as naive UTC like stored timestamps."""
    tz = ZoneInfo(get_settings().timezone)
    start = datetime.combine(day, time.min, tz)
    return start.astimezone(timezone.utc).replace(tzinfo=None)


def days_in_month(year: int, month: int) -> int:
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return (next_month - date(year, month, 1)).days


def month_period(year: int, month: int) -> Period:
    return Period(
        f"{year:04d}-{month:02d}",
        date(year, month, 1),
        date(year, month, days_in_month(year, month)),
    )


def add_months(base: date, months: int) -> date:
    """Shift by whole months, snapping to the last day of shorter months."""
    total_months = base.month - 1 + months
    year = base.year + total_months // 12
    month = total_months % 12 + 1
    day = min(base.day, days_in_month(year, month))
    return date(year, month, day)


def resolve_period(
    period: Optional[str],
    start: Optional[str],
    end: Optional[str],
    *,
    today: Optional[date] = None,
) -> Period:
    today = today or local_today()
    if not period or period == "all":
        return Period("all", date(1970, 1, 1), date.max)
    if period == "last_month":
        first_this = today.replace(day=1)
        last_month_end = first_this - date.resolution
        return month_period(last_month_end.year, last_month_end.month)
    if period == "this_year":
        return Period("this_year", date(today.year, 1, 1), date(today.year, 12, 31))
    if period == "custom":
        if not start or not end:
            raise ValueError("Custom period requires start and end dates")
        start_date = date.fromisoformat(start)
        end_date = date.fromisoformat(end)
        if start_date > end_date:
            raise ValueError("Start date must be before end date")
        return Period("custom", start_date, end_date)

    this_month = month_period(today.year, today.month)
    return Period("this_month", this_month.start, this_month.end)
