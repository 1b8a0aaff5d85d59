"""Base types and protocols for the calendar scheduling engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

VIEW_KINDS = (
    "day",
    "work-week",
    "week",
    "month",
    "quarter",
    "year",
    "timeline",
    "gantt",
    "people",
    "resources",
    "agenda",
)

EVENT_STATUSES = {"confirmed", "tentative", "cancelled", "milestone", "busy"}
EVENT_PRIORITIES = {"low", "normal", "high", "critical"}
EVENT_TYPES = {"meeting", "task", "milestone", "sprint", "release", "focus", "availability"}

FILTER_OPERATORS = {
    "equals",
    "not-equals",
    "includes",
    "excludes",
    "exists",
    "not-exists",
    "in-range",
}


@dataclass
class LinkedItem:
    id: str
    type: str
    label: str = ""


@dataclass
class Reminder:
    offset_minutes: int
    method: str = "popup"
    id: str = ""


@dataclass
class Attachment:
    id: str
    name: str
    url: str = ""


@dataclass
class Attendee:
    id: str
    name: str
    email: str = ""


@dataclass
class CalendarEvent:
    """Unified calendar event representation."""

    id: str
    calendar_id: str  # Owning calendar layer, e.g. "calendar.team.engineering"
    title: str
    start: datetime
    end: datetime
    description: str = ""
    location: str = ""
    all_day: bool = False
    status: str = "confirmed"
    priority: str = "normal"
    type: str = "meeting"
    project_id: str = ""
    organizer: str = ""
    owner_id: str = ""
    owner_name: str = ""
    team_id: str = ""
    team_name: str = ""
    color: str | None = None
    labels: list[str] = field(default_factory=list)
    linked_items: list[LinkedItem] = field(default_factory=list)
    reminders: list[Reminder] = field(default_factory=list)
    attachments: list[Attachment] = field(default_factory=list)
    attendees: list[Attendee] = field(default_factory=list)
    comments: list[dict[str, Any]] = field(default_factory=list)
    invitations: list[dict[str, Any]] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    has_attachments: bool | None = None  # explicit flag from the source, None = derive from list
    has_reminders: bool | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class DateRange:
    """Inclusive date window; ``to`` is the last microsecond of the final day."""

    from_: datetime
    to: datetime


@dataclass(frozen=True)
class SearchToken:
    type: str  # keyword, user, project, tag
    value: str
    display: str


@dataclass
class FilterCondition:
    field: str
    operator: str
    value: Any = None
    id: str = ""


@dataclass
class FilterGroup:
    logic: str = "AND"  # "AND" | "OR"
    conditions: list[FilterCondition] = field(default_factory=list)
    id: str = ""


@dataclass
class SavedFilter:
    id: str
    name: str
    groups: list[FilterGroup] = field(default_factory=list)
    description: str = ""


@dataclass(frozen=True)
class RangeQuery:
    """Window request handed to an event source."""

    from_: datetime
    to: datetime
    calendar_ids: tuple[str, ...] = ()
    project_id: str | None = None
    color_encoding: str = "calendar"


@runtime_checkable
class EventSource(Protocol):
    """Protocol that all range-query providers must satisfy."""

    async def list_events(self, query: RangeQuery) -> list[CalendarEvent]: ...


@runtime_checkable
class KeyValueStore(Protocol):
    """Minimal persistence for opaque string blobs."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


@runtime_checkable
class MutationSink(Protocol):
    """Receives locally applied mutations for durable storage."""

    def event_updated(self, event: CalendarEvent) -> None: ...

    def event_deleted(self, event_id: str) -> None: ...
