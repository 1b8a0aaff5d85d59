"""Time-overlap conflict detection."""

from __future__ import annotations

from typing import Iterable

from .base import CalendarEvent


def detect_conflicts(events: Iterable[CalendarEvent]) -> set[str]:
    """Return ids of events whose [start, end) overlaps at least one other event.

    Sorted sweep: for each event, scan forward only while the next start lies
    before its end. Touching intervals (end == start) do not conflict.
    """
    ordered = sorted(events, key=lambda e: e.start)
    conflicts: set[str] = set()
    for i, current in enumerate(ordered):
        j = i + 1
        while j < len(ordered) and ordered[j].start < current.end:
            conflicts.add(current.id)
            conflicts.add(ordered[j].id)
            j += 1
    return conflicts


def conflict_signature(conflicts: Iterable[str]) -> str:
    """Stable key for a conflict set: sorted ids joined by ``|``."""
    return "|".join(sorted(conflicts))
