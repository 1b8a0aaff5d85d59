"""Filter conditions, filter groups and search-token matching over events.

Conditions on fields this module does not know evaluate to True. An
unrecognised filter never hides an event.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Iterable

from dateutil.parser import parse as parse_dt

from .base import CalendarEvent, FilterCondition, FilterGroup, SearchToken

logger = logging.getLogger("mcp-calendar-engine")

STRING_FIELDS = {"calendar", "owner", "team", "project", "status", "type", "priority"}
PRESENCE_OPERATORS = {"exists", "not-exists"}


def _lower(value: Any) -> str:
    return str(value).strip().lower() if value is not None else ""


def _field_values(event: CalendarEvent, field: str) -> list[str]:
    """Lowercased attribute values a string field is compared against."""
    if field == "calendar":
        raw = [event.calendar_id]
    elif field == "owner":
        raw = [event.owner_id, event.owner_name]
    elif field == "team":
        raw = [event.team_id, event.team_name]
    elif field == "project":
        raw = [event.project_id]
    else:
        raw = [getattr(event, field, "")]
    return [_lower(v) for v in raw if v]


def _owner_fuzzy(event: CalendarEvent, needle: str) -> bool:
    if not needle:
        return False
    names = [event.organizer] + [a.name for a in event.attendees]
    return any(needle in _lower(name) for name in names if name)


def _compare_string(values: list[str], operator: str, needle: str) -> bool:
    if operator == "exists":
        return bool(values)
    if operator == "not-exists":
        return not values
    if operator == "equals":
        return needle in values
    if operator == "not-equals":
        return needle not in values
    if operator == "includes":
        return any(needle in v for v in values)
    if operator == "excludes":
        return not any(needle in v for v in values)
    return True


def _compare_set(values: set[str], operator: str, needle: str) -> bool:
    if operator == "exists":
        return bool(values)
    if operator == "not-exists":
        return not values
    if operator in ("includes", "equals"):
        return needle in values
    if operator in ("excludes", "not-equals"):
        return needle not in values
    return True


def has_attachments(event: CalendarEvent) -> bool:
    return len(event.attachments) > 0 or bool(event.has_attachments)


def has_reminders(event: CalendarEvent) -> bool:
    return len(event.reminders) > 0 or bool(event.has_reminders)


def _as_datetime(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if not isinstance(value, datetime):
        try:
            value = parse_dt(str(value))
        except (ValueError, OverflowError):
            logger.warning("Ignoring unparseable time range bound: %r", value)
            return None
    # Local clock only
    return value.replace(tzinfo=None)


def _in_time_range(event: CalendarEvent, value: Any, now: datetime) -> bool:
    if value == "upcoming":
        return event.start >= now
    if value == "past":
        return event.start < now
    if value == "next7d":
        return now <= event.start <= now + timedelta(days=7)
    if isinstance(value, dict):
        lower = _as_datetime(value.get("from"))
        upper = _as_datetime(value.get("to"))
        if lower is not None and event.start < lower:
            return False
        if upper is not None and event.start > upper:
            return False
        return True
    return True


def evaluate_condition(
    event: CalendarEvent,
    condition: FilterCondition,
    now: datetime | None = None,
) -> bool:
    """Evaluate one filter condition against an event."""
    field = condition.field
    operator = condition.operator
    needle = _lower(condition.value)

    if field in STRING_FIELDS:
        values = _field_values(event, field)
        matched = _compare_string(values, operator, needle)
        if field == "owner" and operator not in PRESENCE_OPERATORS:
            fuzzy = _owner_fuzzy(event, needle)
            if operator in ("not-equals", "excludes"):
                return matched and not fuzzy
            return matched or fuzzy
        return matched

    if field == "label":
        return _compare_set({_lower(label) for label in event.labels}, operator, needle)

    if field == "linkedItemType":
        return _compare_set({_lower(item.type) for item in event.linked_items}, operator, needle)

    if field in ("hasAttachments", "hasReminders"):
        present = has_attachments(event) if field == "hasAttachments" else has_reminders(event)
        return not present if operator == "not-exists" else present

    if field == "timeRange":
        if operator != "in-range":
            return True
        return _in_time_range(event, condition.value, now or datetime.now())

    return True


def matches_filter_groups(
    event: CalendarEvent,
    groups: Iterable[FilterGroup],
    now: datetime | None = None,
) -> bool:
    """Every group must pass; a group combines its conditions with its own logic."""
    for group in groups:
        if not group.conditions:
            continue
        results = (evaluate_condition(event, c, now) for c in group.conditions)
        passed = any(results) if group.logic.upper() == "OR" else all(results)
        if not passed:
            return False
    return True


def _token_matches(event: CalendarEvent, token: SearchToken) -> bool:
    if token.type == "keyword":
        haystack = f"{event.title} {event.description}".lower()
        return token.value in haystack
    if token.type == "user":
        candidates = [event.owner_name]
        for attendee in event.attendees:
            candidates.extend([attendee.name, attendee.email])
        return any(token.value in _lower(c) for c in candidates if c)
    if token.type == "project":
        ids = [event.project_id] + [item.id for item in event.linked_items]
        return token.value in {_lower(i) for i in ids if i}
    if token.type == "tag":
        return token.value in {_lower(label) for label in event.labels}
    return True


def matches_search_tokens(event: CalendarEvent, tokens: Iterable[SearchToken]) -> bool:
    """All tokens must match the event."""
    return all(_token_matches(event, token) for token in tokens)


def filter_events(
    events: Iterable[CalendarEvent],
    groups: Iterable[FilterGroup],
    tokens: Iterable[SearchToken],
    now: datetime | None = None,
) -> list[CalendarEvent]:
    """Return the events passing both the filter groups and the search tokens."""
    groups = list(groups)
    tokens = list(tokens)
    return [
        e for e in events
        if matches_filter_groups(e, groups, now) and matches_search_tokens(e, tokens)
    ]
