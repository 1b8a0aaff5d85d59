#!/usr/bin/env python3
"""
mcp-calendar-engine: Calendar scheduling engine MCP server.

Range resolution, filtering and search, conflict detection, drag rescheduling,
quick add and undo/redo over an in-memory event collection.

Environment variables:
    CALENDAR_ENGINE_CONFIG - Path to calendar_engine.yaml (default: /config/calendar_engine.yaml)
"""

import logging
import sys
from typing import Any

from mcp.server.fastmcp import FastMCP

from .config import EngineConfig, load_config
from .engine.base import VIEW_KINDS
from .engine.cache import JsonFileStore, MemoryStore
from .engine.ranges import format_range_label, shift_pivot
from .engine.serialize import event_to_dict, filter_groups_from_list, filter_groups_to_list, parse_datetime
from .engine.session import CalendarSession
from .engine.source import InMemoryEventSource

# MCP stdio servers must NEVER write to stdout; log to stderr only.
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger("mcp-calendar-engine")


# ---------------------------------------------------------------------------
# Module-level state
# ---------------------------------------------------------------------------

_config: EngineConfig = EngineConfig()
_session: CalendarSession | None = None


def _visible_calendar_ids(config: EngineConfig) -> list[str]:
    return [c.id for c in config.calendars.values() if c.visible]


def _init_session(config: EngineConfig) -> CalendarSession:
    """Build the session for a loaded config. The seed source also receives mutations."""
    source = InMemoryEventSource(config.events)
    if config.settings.cache_file:
        store = JsonFileStore(config.settings.cache_file)
    else:
        store = MemoryStore()
    session = CalendarSession(
        source,
        store=store,
        sinks=[source],
        settings=config.settings,
        saved_filters=config.saved_filters,
    )
    session.set_calendars(_visible_calendar_ids(config))
    return session


def _get_session() -> CalendarSession:
    """Get the session. Lazy-initializes from the current config on first access."""
    global _session
    if _session is None:
        _session = _init_session(_config)
    return _session


def _range_to_dict(session: CalendarSession) -> dict[str, Any]:
    window = session.range
    return {
        "view": session.view,
        "from": window.from_.isoformat(),
        "to": window.to.isoformat(),
        "label": format_range_label(session.view, window),
    }


def _visible_payload(session: CalendarSession) -> dict[str, Any]:
    """Filtered events plus their conflict flags."""
    events = session.visible_events()
    conflicts = session.conflicts()
    result: dict[str, Any] = {
        "range": _range_to_dict(session),
        "count": len(events),
        "events": [
            {**event_to_dict(e), "conflict": e.id in conflicts}
            for e in sorted(events, key=lambda e: e.start)
        ],
        "conflicts": sorted(conflicts),
        "can_undo": session.state.can_undo,
        "can_redo": session.state.can_redo,
    }
    if session.error:
        result["errors"] = [session.error]
    return result


# ---------------------------------------------------------------------------
# MCP Server + Tools
# ---------------------------------------------------------------------------

mcp = FastMCP("calendar-engine")


@mcp.tool()
async def list_calendars() -> dict:
    """List all configured calendar layers.

    Returns id, name, color and visibility for each calendar.
    """
    if not _config.calendars:
        return {"error": "No calendars configured"}
    return {
        "calendars": [
            {"id": c.id, "name": c.name, "color": c.color, "visible": c.visible}
            for c in _config.calendars.values()
        ]
    }


@mcp.tool()
async def toggle_calendar_visibility(calendar_id: str) -> dict:
    """Show or hide a calendar layer, then reload events for the current window.

    Hiding every layer shows all calendars again.

    Args:
        calendar_id: Calendar ID (from list_calendars)
    """
    layer = _config.calendars.get(calendar_id)
    if layer is None:
        return {"error": f"Unknown calendar '{calendar_id}'. Available: {list(_config.calendars)}"}
    layer.visible = not layer.visible
    logger.info("Calendar '%s' is now %s", calendar_id, "visible" if layer.visible else "hidden")

    session = _get_session()
    session.set_calendars(_visible_calendar_ids(_config))
    await session.refresh()
    result = _visible_payload(session)
    result["calendar"] = {"id": layer.id, "visible": layer.visible}
    return result


@mcp.tool()
async def set_project(project_id: str = "") -> dict:
    """Scope loaded events to one project, then reload.

    Args:
        project_id: Project ID, e.g. "apollo". Empty = all projects.
    """
    session = _get_session()
    session.set_project(project_id)
    await session.refresh()
    result = _visible_payload(session)
    result["project_id"] = session.project_id
    return result


@mcp.tool()
async def set_view(view: str = "", pivot: str = "") -> dict:
    """Switch the calendar view and/or pivot date, then reload events for the new window.

    Args:
        view: One of day, work-week, week, month, quarter, year, timeline, gantt, people, resources, agenda. Empty = keep current.
        pivot: Date inside the window (ISO 8601, e.g. "2026-02-13"). Empty = keep current.
    """
    session = _get_session()
    dt_pivot = None
    if pivot:
        try:
            dt_pivot = parse_datetime(pivot)
        except (ValueError, OverflowError):
            return {"error": f"Invalid pivot date: {pivot}"}
    try:
        session.set_view(view or session.view, dt_pivot)
    except ValueError as e:
        return {"error": str(e)}
    await session.refresh()
    return _visible_payload(session)


@mcp.tool()
async def navigate(steps: int = 1) -> dict:
    """Move the window forward (positive) or back (negative) by whole view units.

    Args:
        steps: Number of days/weeks/months/quarters/years to move, depending on the view.
    """
    session = _get_session()
    session.set_view(session.view, shift_pivot(session.view, session.pivot, steps))
    await session.refresh()
    return _visible_payload(session)


@mcp.tool()
async def list_events(refresh: bool = False) -> dict:
    """List the visible events of the current window after filters and search.

    Args:
        refresh: Reload from the event source before listing.
    """
    session = _get_session()
    if refresh:
        await session.refresh()
    return _visible_payload(session)


@mcp.tool()
async def search_events(query: str = "") -> dict:
    """Set the free-text search query and return matching events.

    Tokens: @user, #project, tag:label, anything else matches title/description.

    Args:
        query: Search text. Empty clears the search.
    """
    session = _get_session()
    session.set_search_query(query)
    result = _visible_payload(session)
    result["tokens"] = [
        {"type": t.type, "value": t.value, "display": t.display} for t in session.search_tokens
    ]
    return result


@mcp.tool()
async def set_filters(groups: list[dict[str, Any]]) -> dict:
    """Replace the active filter groups.

    Groups are ANDed together; each group combines its conditions with its own logic.

    Args:
        groups: [{"logic": "AND"|"OR", "conditions": [{"field": ..., "operator": ..., "value": ...}]}]
    """
    session = _get_session()
    try:
        parsed = filter_groups_from_list(groups)
    except (ValueError, TypeError) as e:
        return {"error": f"Invalid filters: {e}"}
    session.set_filters(parsed)
    return _visible_payload(session)


@mcp.tool()
async def list_saved_filters() -> dict:
    """List saved filters with their groups."""
    session = _get_session()
    return {
        "active": session.active_filter_id,
        "saved_filters": [
            {
                "id": f.id,
                "name": f.name,
                "description": f.description,
                "groups": filter_groups_to_list(f.groups),
            }
            for f in session.saved_filters.values()
        ],
    }


@mcp.tool()
async def apply_saved_filter(filter_id: str = "") -> dict:
    """Activate a saved filter.

    Args:
        filter_id: Saved filter id (from list_saved_filters). Empty = clear all filters.
    """
    session = _get_session()
    try:
        session.apply_saved_filter(filter_id or None)
    except ValueError as e:
        return {"error": str(e)}
    return _visible_payload(session)


@mcp.tool()
async def quick_add(text: str) -> dict:
    """Create an event from a single line, e.g. "Team sync tomorrow 2pm-3pm #eng".

    Args:
        text: Title plus optional today/tomorrow, time range "H[:MM][am|pm]-H[:MM][am|pm]" and #calendar hint.
    """
    session = _get_session()
    event = session.quick_add(text)
    if event is None:
        return {"error": "Nothing to add"}
    return {"success": True, "event": event_to_dict(event)}


@mcp.tool()
async def drag_event(event_id: str, mode: str, drop: str, snap_minutes: int = 0) -> dict:
    """Reschedule an event as if dragged on the day grid.

    Args:
        event_id: Event ID (from list_events)
        mode: "move", "resize-start" or "resize-end"
        drop: Drop timestamp (ISO 8601, e.g. "2026-02-13T07:23:00")
        snap_minutes: 5, 15 or 30. 0 = configured default.
    """
    session = _get_session()
    try:
        dt_drop = parse_datetime(drop)
    except (ValueError, OverflowError):
        return {"error": f"Invalid drop time: {drop}"}
    try:
        event = session.drag(event_id, mode, dt_drop, snap_minutes or None)
    except ValueError as e:
        return {"error": str(e)}
    if event is None:
        return {"error": f"Event not found: {event_id}"}
    return {"success": True, "event": event_to_dict(event)}


@mcp.tool()
async def delete_event(event_id: str) -> dict:
    """Delete an event from the working collection (undoable).

    Args:
        event_id: Event ID (from list_events)
    """
    session = _get_session()
    if session.delete_event(event_id):
        return {"success": True, "message": f"Event deleted: {event_id}"}
    return {"error": f"Event not found: {event_id}"}


@mcp.tool()
async def undo() -> dict:
    """Undo the most recent change to the event collection."""
    session = _get_session()
    if not session.undo():
        return {"error": "Nothing to undo"}
    return _visible_payload(session)


@mcp.tool()
async def redo() -> dict:
    """Redo the most recently undone change."""
    session = _get_session()
    if not session.redo():
        return {"error": "Nothing to redo"}
    return _visible_payload(session)


@mcp.tool()
async def get_conflicts() -> dict:
    """Return ids and titles of visible events that overlap another visible event."""
    session = _get_session()
    conflicts = session.conflicts()
    return {
        "count": len(conflicts),
        "events": [
            {"id": e.id, "title": e.title, "start": e.start.isoformat(), "end": e.end.isoformat()}
            for e in sorted(session.visible_events(), key=lambda e: e.start)
            if e.id in conflicts
        ],
    }


@mcp.tool()
async def set_auto_offset(enabled: bool) -> dict:
    """Enable or disable the automatic 5-minute nudge for new conflicts.

    Args:
        enabled: True to nudge newly conflicting events forward by 5 minutes.
    """
    session = _get_session()
    session.set_auto_offset(enabled)
    result = _visible_payload(session)
    result["auto_offset"] = session.auto_offset
    return result


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main():
    """Entry point for console script and python -m."""
    global _config, _session

    _config = load_config()
    _session = _init_session(_config)
    logger.info(
        "Loaded %d calendar(s), %d seed event(s); views: %s",
        len(_config.calendars), len(_config.events), ", ".join(VIEW_KINDS),
    )
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
