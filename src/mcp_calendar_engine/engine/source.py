"""In-memory range-query event source."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable

from .base import CalendarEvent, RangeQuery
from .filters import has_attachments, has_reminders

logger = logging.getLogger("mcp-calendar-engine")

STATUS_COLORS = {
    "confirmed": "#2563eb",
    "tentative": "#facc15",
    "cancelled": "#9ca3af",
    "milestone": "#d946ef",
    "busy": "#f97316",
}

PRIORITY_COLORS = {
    "low": "#22c55e",
    "normal": "#0ea5e9",
    "high": "#f97316",
    "critical": "#ef4444",
}

TYPE_COLORS = {
    "meeting": "#3b82f6",
    "task": "#6366f1",
    "milestone": "#d946ef",
    "sprint": "#22d3ee",
    "release": "#facc15",
    "focus": "#16a34a",
    "availability": "#94a3b8",
}

COLOR_ENCODINGS = {"calendar", "status", "priority", "type"}


def infer_color(event: CalendarEvent, color_encoding: str = "calendar") -> str | None:
    """Colour for an event under the given encoding; None means use the calendar colour."""
    if color_encoding == "status":
        return STATUS_COLORS.get(event.status)
    if color_encoding == "priority":
        return PRIORITY_COLORS.get(event.priority)
    if color_encoding == "type":
        return TYPE_COLORS.get(event.type)
    return None


def overlaps_range(event: CalendarEvent, query: RangeQuery) -> bool:
    return event.start <= query.to and event.end >= query.from_


class InMemoryEventSource:
    """Event source backed by a list of events, e.g. seed data from config."""

    def __init__(self, events: Iterable[CalendarEvent] = ()):
        self._events = list(events)

    def _matches(self, event: CalendarEvent, query: RangeQuery) -> bool:
        if query.project_id and event.project_id != query.project_id:
            return False
        if query.calendar_ids and event.calendar_id not in query.calendar_ids:
            return False
        return overlaps_range(event, query)

    async def list_events(self, query: RangeQuery) -> list[CalendarEvent]:
        events = [
            replace(
                e,
                color=e.color or infer_color(e, query.color_encoding),
                has_attachments=e.has_attachments if e.has_attachments is not None else has_attachments(e),
                has_reminders=e.has_reminders if e.has_reminders is not None else has_reminders(e),
            )
            for e in self._events
            if self._matches(e, query)
        ]
        events.sort(key=lambda e: e.start)
        logger.debug("Event source returned %d event(s) for %s..%s", len(events), query.from_, query.to)
        return events

    # Mutation sink: keeps the source in step with local edits

    def event_updated(self, event: CalendarEvent) -> None:
        self._events = [e for e in self._events if e.id != event.id] + [event]

    def event_deleted(self, event_id: str) -> None:
        self._events = [e for e in self._events if e.id != event_id]
