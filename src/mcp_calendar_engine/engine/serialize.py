"""Conversion between events, filters and JSON-friendly dicts."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from dateutil.parser import parse as parse_dt

from .base import (
    Attachment,
    Attendee,
    EVENT_PRIORITIES,
    EVENT_STATUSES,
    EVENT_TYPES,
    FILTER_OPERATORS,
    CalendarEvent,
    FilterCondition,
    FilterGroup,
    LinkedItem,
    Reminder,
)


def parse_datetime(value: Any) -> datetime:
    """Parse ISO 8601 input (date-only or datetime) into naive local time."""
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    return parse_dt(str(value)).replace(tzinfo=None)


def _optional_datetime(value: Any) -> datetime | None:
    return parse_datetime(value) if value else None


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def event_to_dict(event: CalendarEvent) -> dict[str, Any]:
    """Convert CalendarEvent to JSON-friendly dict."""
    return {
        "id": event.id,
        "calendar_id": event.calendar_id,
        "title": event.title,
        "start": event.start.isoformat(),
        "end": event.end.isoformat(),
        "description": event.description,
        "location": event.location,
        "all_day": event.all_day,
        "status": event.status,
        "priority": event.priority,
        "type": event.type,
        "project_id": event.project_id,
        "organizer": event.organizer,
        "owner_id": event.owner_id,
        "owner_name": event.owner_name,
        "team_id": event.team_id,
        "team_name": event.team_name,
        "color": event.color,
        "labels": list(event.labels),
        "linked_items": [
            {"id": i.id, "type": i.type, "label": i.label} for i in event.linked_items
        ],
        "reminders": [
            {"id": r.id, "offset_minutes": r.offset_minutes, "method": r.method}
            for r in event.reminders
        ],
        "attachments": [
            {"id": a.id, "name": a.name, "url": a.url} for a in event.attachments
        ],
        "attendees": [
            {"id": a.id, "name": a.name, "email": a.email} for a in event.attendees
        ],
        "comments": list(event.comments),
        "invitations": list(event.invitations),
        "metadata": dict(event.metadata),
        "has_attachments": event.has_attachments,
        "has_reminders": event.has_reminders,
        "created_at": _iso(event.created_at),
        "updated_at": _iso(event.updated_at),
    }


def event_from_dict(data: dict[str, Any]) -> CalendarEvent:
    """Build a CalendarEvent from a dict produced by ``event_to_dict`` or YAML seed data.

    Raises ValueError when id, start or end are missing or unparseable, or when
    status, priority or type is not a known value.
    """
    for key in ("id", "start", "end"):
        if not data.get(key):
            raise ValueError(f"Event missing '{key}' field")
    start = parse_datetime(data["start"])
    end = parse_datetime(data["end"])

    status = data.get("status", "confirmed")
    if status not in EVENT_STATUSES:
        raise ValueError(f"Event '{data['id']}': unknown status '{status}'. Must be one of: {sorted(EVENT_STATUSES)}")
    priority = data.get("priority", "normal")
    if priority not in EVENT_PRIORITIES:
        raise ValueError(
            f"Event '{data['id']}': unknown priority '{priority}'. Must be one of: {sorted(EVENT_PRIORITIES)}"
        )
    event_type = data.get("type", "meeting")
    if event_type not in EVENT_TYPES:
        raise ValueError(f"Event '{data['id']}': unknown type '{event_type}'. Must be one of: {sorted(EVENT_TYPES)}")

    reminders = []
    for r in data.get("reminders") or []:
        offset = int(r.get("offset_minutes", 0))
        if offset < 0:
            raise ValueError(f"Event '{data['id']}': reminder offset must be >= 0")
        reminders.append(Reminder(offset_minutes=offset, method=r.get("method", "popup"), id=r.get("id", "")))

    return CalendarEvent(
        id=str(data["id"]),
        calendar_id=data.get("calendar_id", ""),
        title=data.get("title", ""),
        start=start,
        end=end,
        description=data.get("description", "") or "",
        location=data.get("location", "") or "",
        all_day=bool(data.get("all_day", False)),
        status=status,
        priority=priority,
        type=event_type,
        project_id=data.get("project_id", "") or "",
        organizer=data.get("organizer", "") or "",
        owner_id=data.get("owner_id", "") or "",
        owner_name=data.get("owner_name", "") or "",
        team_id=data.get("team_id", "") or "",
        team_name=data.get("team_name", "") or "",
        color=data.get("color"),
        labels=[str(label) for label in data.get("labels") or []],
        linked_items=[
            LinkedItem(id=i["id"], type=i.get("type", ""), label=i.get("label", ""))
            for i in data.get("linked_items") or []
        ],
        reminders=reminders,
        attachments=[
            Attachment(id=a["id"], name=a.get("name", ""), url=a.get("url", ""))
            for a in data.get("attachments") or []
        ],
        attendees=[
            Attendee(id=a.get("id", ""), name=a.get("name", ""), email=a.get("email", ""))
            for a in data.get("attendees") or []
        ],
        comments=list(data.get("comments") or []),
        invitations=list(data.get("invitations") or []),
        metadata=dict(data.get("metadata") or {}),
        has_attachments=data.get("has_attachments"),
        has_reminders=data.get("has_reminders"),
        created_at=_optional_datetime(data.get("created_at")),
        updated_at=_optional_datetime(data.get("updated_at")),
    )


def filter_groups_from_list(raw: list[dict[str, Any]]) -> list[FilterGroup]:
    """Build filter groups from ``[{"logic": ..., "conditions": [...]}]``.

    Raises ValueError on malformed entries or an unknown group logic.
    """
    groups: list[FilterGroup] = []
    for index, entry in enumerate(raw or []):
        if not isinstance(entry, dict):
            raise ValueError(f"Filter group {index} must be a mapping")
        logic = str(entry.get("logic", "AND")).upper()
        if logic not in ("AND", "OR"):
            raise ValueError(f"Filter group {index}: invalid logic '{logic}'. Must be AND or OR")
        conditions = []
        for cond in entry.get("conditions") or []:
            if "field" not in cond or "operator" not in cond:
                raise ValueError(f"Filter group {index}: condition needs 'field' and 'operator'")
            if cond["operator"] not in FILTER_OPERATORS:
                raise ValueError(
                    f"Filter group {index}: unknown operator '{cond['operator']}'. "
                    f"Must be one of: {sorted(FILTER_OPERATORS)}"
                )
            conditions.append(FilterCondition(
                field=cond["field"],
                operator=cond["operator"],
                value=cond.get("value"),
                id=cond.get("id", ""),
            ))
        groups.append(FilterGroup(logic=logic, conditions=conditions, id=entry.get("id", "")))
    return groups


def filter_groups_to_list(groups: list[FilterGroup]) -> list[dict[str, Any]]:
    return [
        {
            "id": g.id,
            "logic": g.logic,
            "conditions": [
                {"id": c.id, "field": c.field, "operator": c.operator, "value": c.value}
                for c in g.conditions
            ],
        }
        for g in groups
    ]
