"""Investment calendar: the second <weekday> of every month."""

from __future__ import annotations

import calendar
from datetime import date, timedelta


def second_weekday_of_month(year: int, month: int, weekday: int = calendar.WEDNESDAY) -> date:
    """First occurrence of ``weekday`` (Monday=0) in the month, plus 7 days."""
    first_day = date(year, month, 1)
    offset = (weekday - first_day.weekday()) % 7
    return first_day + timedelta(days=offset + 7)


def _month_starts(start: date, end: date):
    year, month = start.year, start.month
    while (year, month) <= (end.year, end.month):
        yield year, month
        month += 1
        if month > 12:
            year, month = year + 1, 1


def scheduled_dates_in_range(start: date, end: date, weekday: int = calendar.WEDNESDAY) -> list[date]:
    """All scheduled dates within [start, end], in ascending order."""
    dates: list[date] = []
    if start > end:
        return dates
    for year, month in _month_starts(start, end):
        d = second_weekday_of_month(year, month, weekday)
        if start <= d <= end:
            dates.append(d)
    return dates


def is_scheduled_date(day: date, weekday: int = calendar.WEDNESDAY) -> bool:
    return day.day == second_weekday_of_month(day.year, day.month, weekday).day


def next_scheduled_date(after: date, weekday: int = calendar.WEDNESDAY) -> date:
    """First scheduled date on or after ``after``."""
    d = second_weekday_of_month(after.year, after.month, weekday)
    if d >= after:
        return d
    if after.month == 12:
        return second_weekday_of_month(after.year + 1, 1, weekday)
    return second_weekday_of_month(after.year, after.month + 1, weekday)
