"""Date windows per calendar view. Weeks start on Monday."""

from __future__ import annotations

from datetime import datetime, time, timedelta

from dateutil.relativedelta import relativedelta

from .base import VIEW_KINDS, DateRange

WEEK_VIEWS = {"week", "people", "resources"}
MONTH_VIEWS = {"month", "timeline", "gantt"}


def start_of_day(value: datetime) -> datetime:
    return datetime.combine(value.date(), time.min)


def end_of_day(value: datetime) -> datetime:
    return datetime.combine(value.date(), time.max)


def start_of_week(value: datetime) -> datetime:
    return start_of_day(value) - timedelta(days=value.weekday())


def end_of_week(value: datetime) -> datetime:
    return end_of_day(value) + timedelta(days=6 - value.weekday())


def _month_range(pivot: datetime, months: int) -> DateRange:
    """Range covering ``months`` calendar months from the block containing pivot."""
    first_month = (pivot.month - 1) // months * months + 1
    start = datetime(pivot.year, first_month, 1)
    end = start + relativedelta(months=months) - timedelta(microseconds=1)
    return DateRange(start, end)


def resolve_range(view: str, pivot: datetime) -> DateRange:
    """Return the inclusive window a view shows around ``pivot``.

    Raises ValueError for an unknown view kind.
    """
    if view == "day":
        return DateRange(start_of_day(pivot), end_of_day(pivot))
    if view == "work-week":
        monday = start_of_week(pivot)
        return DateRange(monday, end_of_day(monday + timedelta(days=4)))
    if view in WEEK_VIEWS:
        return DateRange(start_of_week(pivot), end_of_week(pivot))
    if view in MONTH_VIEWS:
        return _month_range(pivot, 1)
    if view == "quarter":
        return _month_range(pivot, 3)
    if view == "year":
        return _month_range(pivot, 12)
    if view == "agenda":
        return DateRange(start_of_day(pivot), end_of_week(pivot))
    raise ValueError(f"Unknown view '{view}'. Must be one of: {', '.join(VIEW_KINDS)}")


def shift_pivot(view: str, pivot: datetime, steps: int) -> datetime:
    """Move ``pivot`` by whole view units (previous/next navigation)."""
    if view == "day":
        return pivot + timedelta(days=steps)
    if view in WEEK_VIEWS or view in ("work-week", "agenda"):
        return pivot + timedelta(weeks=steps)
    if view in MONTH_VIEWS:
        return pivot + relativedelta(months=steps)
    if view == "quarter":
        return pivot + relativedelta(months=3 * steps)
    if view == "year":
        return pivot + relativedelta(years=steps)
    raise ValueError(f"Unknown view '{view}'. Must be one of: {', '.join(VIEW_KINDS)}")


def format_range_label(view: str, window: DateRange) -> str:
    """Header label for a resolved window."""
    if view == "day":
        return f"{window.from_:%A, %b} {window.from_.day}"
    if view in MONTH_VIEWS:
        return window.from_.strftime("%B %Y")
    if view == "quarter":
        quarter = (window.from_.month - 1) // 3 + 1
        return f"Q{quarter} {window.from_.year}"
    if view == "year":
        return str(window.from_.year)
    return f"{window.from_:%b} {window.from_.day} - {window.to:%b} {window.to.day}"
