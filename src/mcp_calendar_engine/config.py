"""YAML configuration loading for calendar layers, defaults and saved filters."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any

import yaml

from .engine.base import VIEW_KINDS, CalendarEvent, FilterCondition, FilterGroup, SavedFilter
from .engine.drag import SNAP_INTERVALS
from .engine.history import HISTORY_LIMIT
from .engine.serialize import event_from_dict, filter_groups_from_list
from .engine.source import COLOR_ENCODINGS

logger = logging.getLogger("mcp-calendar-engine")

CONFIG_PATH = os.environ.get("CALENDAR_ENGINE_CONFIG", "/config/calendar_engine.yaml")


@dataclass
class CalendarLayer:
    """A single calendar layer shown on the page."""

    id: str
    name: str
    color: str = "#2563eb"
    visible: bool = True
    description: str = ""


@dataclass
class EngineSettings:
    """Calendar page defaults."""

    default_view: str = "week"
    snap_minutes: int = 15
    default_reminder_minutes: int = 10
    color_encoding: str = "calendar"  # calendar, status, priority, type
    history_limit: int = HISTORY_LIMIT
    auto_offset: bool = False
    default_calendar: str = "calendar.personal"
    cache_file: str | None = None  # None = in-memory cache only


@dataclass
class EngineConfig:
    calendars: dict[str, CalendarLayer] = field(default_factory=dict)
    settings: EngineSettings = field(default_factory=EngineSettings)
    saved_filters: list[SavedFilter] = field(default_factory=list)
    events: list[CalendarEvent] = field(default_factory=list)


def default_saved_filters() -> list[SavedFilter]:
    return [
        SavedFilter(
            id="saved-filter-critical",
            name="Critical milestones",
            description="Milestones and releases marked as critical priority",
            groups=[FilterGroup(logic="AND", id="group-critical", conditions=[
                FilterCondition("type", "equals", "milestone", id="cond-type"),
                FilterCondition("priority", "equals", "critical", id="cond-priority"),
            ])],
        ),
        SavedFilter(
            id="saved-filter-followups",
            name="Meetings with attachments",
            description="Sessions that include collateral to review",
            groups=[FilterGroup(logic="AND", id="group-attachments", conditions=[
                FilterCondition("type", "equals", "meeting", id="cond-type-meeting"),
                FilterCondition("hasAttachments", "exists", id="cond-has-attachments"),
            ])],
        ),
    ]


def _load_settings(raw: dict[str, Any]) -> EngineSettings:
    settings = EngineSettings()
    unknown = set(raw) - set(settings.__dataclass_fields__)
    if unknown:
        logger.warning("Ignoring unknown defaults: %s", sorted(unknown))

    view = raw.get("default_view", settings.default_view)
    if view not in VIEW_KINDS:
        raise ValueError(f"defaults: unknown default_view '{view}'. Must be one of: {VIEW_KINDS}")

    snap = int(raw.get("snap_minutes", settings.snap_minutes))
    if snap not in SNAP_INTERVALS:
        raise ValueError(f"defaults: snap_minutes must be one of {SNAP_INTERVALS}, got {snap}")

    encoding = raw.get("color_encoding", settings.color_encoding)
    if encoding not in COLOR_ENCODINGS:
        raise ValueError(
            f"defaults: unknown color_encoding '{encoding}'. Must be one of: {COLOR_ENCODINGS}"
        )

    history_limit = int(raw.get("history_limit", settings.history_limit))
    if history_limit < 1:
        raise ValueError("defaults: history_limit must be at least 1")

    return EngineSettings(
        default_view=view,
        snap_minutes=snap,
        default_reminder_minutes=int(raw.get("default_reminder_minutes", settings.default_reminder_minutes)),
        color_encoding=encoding,
        history_limit=history_limit,
        auto_offset=bool(raw.get("auto_offset", settings.auto_offset)),
        default_calendar=raw.get("default_calendar", settings.default_calendar),
        cache_file=raw.get("cache_file"),
    )


def _load_events(raw: dict[str, Any], base_dir: str) -> list[CalendarEvent]:
    entries = list(raw.get("events") or [])
    events_file = raw.get("events_file")
    if events_file:
        path = events_file if os.path.isabs(events_file) else os.path.join(base_dir, events_file)
        if not os.path.isfile(path):
            raise ValueError(f"events_file not found: {path}")
        with open(path, "r") as f:
            entries.extend(yaml.safe_load(f) or [])

    events: list[CalendarEvent] = []
    seen_ids: set[str] = set()
    for entry in entries:
        event = event_from_dict(entry)
        if event.id in seen_ids:
            raise ValueError(f"Duplicate event id: '{event.id}'")
        if event.end < event.start:
            raise ValueError(f"Event '{event.id}': end is before start")
        seen_ids.add(event.id)
        events.append(event)
    return events


def load_config() -> EngineConfig:
    """Load and validate calendar_engine.yaml.

    A missing file yields the built-in defaults.
    """
    path = CONFIG_PATH
    if not os.path.isfile(path):
        logger.warning("Config file not found: %s", path)
        return EngineConfig(saved_filters=default_saved_filters())

    with open(path, "r") as f:
        raw = yaml.safe_load(f) or {}

    calendars: dict[str, CalendarLayer] = {}
    for entry in raw.get("calendars") or []:
        cal_id = str(entry.get("id", "")).strip()
        if not cal_id:
            raise ValueError("Calendar missing 'id' field")
        if cal_id in calendars:
            raise ValueError(f"Duplicate calendar id: '{cal_id}'")
        calendars[cal_id] = CalendarLayer(
            id=cal_id,
            name=entry.get("name", cal_id),
            color=entry.get("color", "#2563eb"),
            visible=bool(entry.get("visible", True)),
            description=entry.get("description", ""),
        )

    settings = _load_settings(raw.get("defaults") or {})
    if calendars and settings.default_calendar not in calendars:
        logger.warning("default_calendar '%s' is not a configured calendar", settings.default_calendar)

    if "saved_filters" in raw:
        saved_filters = []
        for entry in raw["saved_filters"] or []:
            filter_id = str(entry.get("id", "")).strip()
            if not filter_id:
                raise ValueError("Saved filter missing 'id' field")
            try:
                groups = filter_groups_from_list(entry.get("groups") or [])
            except ValueError as e:
                raise ValueError(f"Saved filter '{filter_id}': {e}") from e
            saved_filters.append(SavedFilter(
                id=filter_id,
                name=entry.get("name", filter_id),
                description=entry.get("description", ""),
                groups=groups,
            ))
    else:
        saved_filters = default_saved_filters()

    events = _load_events(raw, os.path.dirname(path))

    return EngineConfig(
        calendars=calendars,
        settings=settings,
        saved_filters=saved_filters,
        events=events,
    )
