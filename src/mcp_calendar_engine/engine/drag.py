"""Snap-and-clamp drag rescheduling for the single-day grid."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta
from typing import Iterable

from .base import CalendarEvent
from .ranges import end_of_day, start_of_day

DRAG_MODES = ("move", "resize-start", "resize-end")
SNAP_INTERVALS = (5, 15, 30)


def snap_to_interval(value: datetime, snap_minutes: int) -> datetime:
    """Round to the nearest snap boundary counted from midnight; halves round up."""
    midnight = start_of_day(value)
    step = timedelta(minutes=snap_minutes)
    slots = (value - midnight) / step
    return midnight + step * int(slots + 0.5)


def clamp_to_day(value: datetime, day: datetime) -> datetime:
    return min(max(value, start_of_day(day)), end_of_day(day))


def reschedule(
    event: CalendarEvent,
    mode: str,
    drop: datetime,
    snap_minutes: int,
    now: datetime | None = None,
) -> CalendarEvent:
    """Return a copy of ``event`` rescheduled by a drag gesture.

    The drop time is snapped, then clamped into the day of the original start.
    ``move`` keeps the duration, ``resize-start`` sets the start as-is and
    ``resize-end`` keeps at least one snap interval of duration.
    """
    if mode not in DRAG_MODES:
        raise ValueError(f"Unknown drag mode '{mode}'. Must be one of: {', '.join(DRAG_MODES)}")
    if snap_minutes not in SNAP_INTERVALS:
        raise ValueError(f"Invalid snap interval {snap_minutes}. Must be one of: {SNAP_INTERVALS}")

    target = clamp_to_day(snap_to_interval(drop, snap_minutes), event.start)
    start, end = event.start, event.end

    if mode == "move":
        start, end = target, target + (event.end - event.start)
    elif mode == "resize-start":
        # An inverted range is left for the caller to validate
        start = target
    else:
        end = target if target > start else start + timedelta(minutes=snap_minutes)

    return replace(event, start=start, end=end, updated_at=now or datetime.now())


def apply_drag(
    events: Iterable[CalendarEvent],
    event_id: str,
    mode: str,
    drop: datetime,
    snap_minutes: int,
    now: datetime | None = None,
) -> list[CalendarEvent]:
    """Reschedule the event with ``event_id``; other events pass through untouched."""
    return [
        reschedule(e, mode, drop, snap_minutes, now) if e.id == event_id else e
        for e in events
    ]
