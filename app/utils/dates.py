import calendar
from datetime import datetime, timedelta


def start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def end_of_day(value: datetime) -> datetime:
    return value.replace(hour=23, minute=59, second=59, microsecond=999999)


def is_same_day(a: datetime, b: datetime) -> bool:
    return a.date() == b.date()


def day_in_month(year: int, month: int, day: int) -> datetime:
    """Midnight of ``day`` in the given month, clamped to the month's last day (31 -> 28/29/30)."""
    last_day = calendar.monthrange(year, month)[1]
    return datetime(year, month, min(day, last_day))


def add_months(year: int, month: int, months: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + months
    return index // 12, index % 12 + 1


def next_occurrence(now: datetime, day: int) -> datetime:
    """Date of the next monthly occurrence on ``day``.

    Today counts as upcoming, so an occurrence is only pushed to next month
    once its day has passed.
    """
    candidate = day_in_month(now.year, now.month, day)
    if candidate < start_of_day(now):
        year, month = add_months(now.year, now.month, 1)
        candidate = day_in_month(year, month, day)
    return candidate


def period_key(value: datetime) -> str:
    return value.strftime("%Y-%m")


def tomorrow_end(now: datetime) -> datetime:
    return end_of_day(start_of_day(now) + timedelta(days=1))


def candidate_periods(now: datetime) -> list[str]:
    """Period keys ``next_occurrence`` can return for ``now``: this month and the next."""
    year, month = add_months(now.year, now.month, 1)
    return [period_key(now), f"{year:04d}-{month:02d}"]
