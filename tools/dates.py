"""
Calendar helpers shared by the services and the dashboard
"""
import calendar
from datetime import date
from typing import Literal


def month_bounds(day: date) -> tuple[date, date]:
    """First and last day of the month containing `day`"""
    last = calendar.monthrange(day.year, day.month)[1]
    return day.replace(day=1), day.replace(day=last)


def period_start(day: date, period: Literal["month", "year"] = "month") -> date:
    if period == "month":
        return day.replace(day=1)
    if period == "year":
        return day.replace(month=1, day=1)
    raise ValueError(f"Unknown period: {period!r}")


def add_months(day: date, months: int) -> date:
    """Shift by whole months, clamping to the end of shorter months"""
    index = day.month - 1 + months
    year = day.year + index // 12
    month = index % 12 + 1
    last = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last))


def month_key(day: date) -> str:
    """YYYY-MM key used for month-scoped budgets"""
    return f"{day.year}-{day.month:02d}"


def previous_month_keys(day: date, months: int) -> list[str]:
    """Keys for the `months` months before the one containing `day`, newest first"""
    first = day.replace(day=1)
    return [month_key(add_months(first, -i)) for i in range(1, months + 1)]
