"""The calendar page's state container.

``CalendarSession`` owns the single ``CalendarState`` value. Every write goes
through ``history.commit`` (or undo/redo); after each change the session
rewrites the local cache, notifies mutation sinks and lets the auto-offset
policy react to the new conflict set.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Iterable, Sequence

from ..config import EngineSettings
from . import history
from .auto_offset import apply_auto_offset
from .base import (
    CalendarEvent,
    DateRange,
    EventSource,
    FilterGroup,
    KeyValueStore,
    MutationSink,
    RangeQuery,
    Reminder,
    SavedFilter,
    SearchToken,
)
from .cache import MemoryStore, load_cached_events, save_cached_events
from .conflicts import detect_conflicts
from .drag import apply_drag
from .filters import filter_events
from .history import CalendarState, EventUpdater
from .quick_add import parse_quick_add
from .ranges import resolve_range
from .search import parse_search_tokens

logger = logging.getLogger("mcp-calendar-engine")


class CalendarSession:
    """Calendar page state: events, filters, history and view window."""

    def __init__(
        self,
        source: EventSource,
        store: KeyValueStore | None = None,
        sinks: Iterable[MutationSink] = (),
        settings: EngineSettings | None = None,
        saved_filters: Sequence[SavedFilter] = (),
        pivot: datetime | None = None,
    ):
        self.source = source
        self.store = store if store is not None else MemoryStore()
        self.sinks = list(sinks)
        self.settings = settings or EngineSettings()
        self.saved_filters = {f.id: f for f in saved_filters}
        self.active_filter_id: str | None = None
        self.view = self.settings.default_view
        self.pivot = pivot or datetime.now()
        self.calendar_ids: tuple[str, ...] = ()
        self.project_id: str | None = None
        self.auto_offset = self.settings.auto_offset
        self.error: str | None = None
        self.state = CalendarState(
            events=tuple(load_cached_events(self.store)),
            history_limit=self.settings.history_limit,
        )

    # ------------------------------------------------------------------
    # View window
    # ------------------------------------------------------------------

    @property
    def range(self) -> DateRange:
        return resolve_range(self.view, self.pivot)

    def set_view(self, view: str, pivot: datetime | None = None) -> DateRange:
        """Switch view and/or pivot. Raises ValueError for an unknown view."""
        window = resolve_range(view, pivot or self.pivot)
        self.view = view
        if pivot is not None:
            self.pivot = pivot
        return window

    def set_calendars(self, calendar_ids: Iterable[str]) -> None:
        """Restrict refreshes to these calendar layers. Empty means every calendar."""
        self.calendar_ids = tuple(calendar_ids)

    def set_project(self, project_id: str | None) -> None:
        self.project_id = project_id or None

    async def refresh(self) -> bool:
        """Replace the working collection with the source's events for the window.

        On failure the current collection stays in place and ``error`` is set.
        """
        window = self.range
        query = RangeQuery(
            from_=window.from_,
            to=window.to,
            calendar_ids=self.calendar_ids,
            project_id=self.project_id,
            color_encoding=self.settings.color_encoding,
        )
        try:
            events = await self.source.list_events(query)
        except Exception as e:
            logger.warning("Failed to refresh events for %s..%s: %s", window.from_, window.to, e)
            self.error = str(e)
            return False

        self.error = None
        self.state = history.replace_events(self.state, events)
        logger.info("Refreshed %d event(s) for %s view", len(events), self.view)
        save_cached_events(self.store, self.state.events)
        self._react()
        return True

    # ------------------------------------------------------------------
    # Filtering and conflicts
    # ------------------------------------------------------------------

    @property
    def events(self) -> tuple[CalendarEvent, ...]:
        return self.state.events

    @property
    def search_tokens(self) -> list[SearchToken]:
        return parse_search_tokens(self.state.search_query)

    def visible_events(self, now: datetime | None = None) -> list[CalendarEvent]:
        return filter_events(self.state.events, self.state.filters, self.search_tokens, now)

    def conflicts(self) -> set[str]:
        return detect_conflicts(self.visible_events())

    def set_filters(self, groups: Iterable[FilterGroup]) -> None:
        self.state = history.set_filters(self.state, groups)
        self.active_filter_id = None
        self._react()

    def set_search_query(self, query: str) -> None:
        self.state = history.set_search_query(self.state, query)
        self._react()

    def apply_saved_filter(self, filter_id: str | None) -> None:
        """Activate a saved filter, or clear the filters with None."""
        if filter_id is None:
            self.set_filters([])
            return
        saved = self.saved_filters.get(filter_id)
        if saved is None:
            raise ValueError(f"Unknown saved filter '{filter_id}'. Available: {list(self.saved_filters)}")
        self.set_filters(saved.groups)
        self.active_filter_id = filter_id

    def set_auto_offset(self, enabled: bool) -> None:
        self.auto_offset = enabled
        self._react()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def commit(self, updater: EventUpdater) -> None:
        before = self.state.events
        self.state = history.commit(self.state, updater)
        self._after_change(before)

    def undo(self) -> bool:
        if not self.state.can_undo:
            return False
        before = self.state.events
        self.state = history.undo(self.state)
        self._after_change(before)
        return True

    def redo(self) -> bool:
        if not self.state.can_redo:
            return False
        before = self.state.events
        self.state = history.redo(self.state)
        self._after_change(before)
        return True

    def get_event(self, event_id: str) -> CalendarEvent | None:
        return next((e for e in self.state.events if e.id == event_id), None)

    def quick_add(self, text: str, fallback: datetime | None = None) -> CalendarEvent | None:
        """Create an event from a quick-add line. Blank input adds nothing."""
        draft = parse_quick_add(text, fallback or self.range.from_, today=datetime.now())
        if draft is None:
            return None
        now = datetime.now()
        event = CalendarEvent(
            id=str(uuid.uuid4()),
            calendar_id=draft.calendar_id or self.settings.default_calendar,
            title=draft.title,
            start=draft.start,
            end=draft.end,
            reminders=[Reminder(offset_minutes=self.settings.default_reminder_minutes)],
            created_at=now,
            updated_at=now,
        )
        self.commit(lambda events: events + [event])
        return event

    def drag(
        self,
        event_id: str,
        mode: str,
        drop: datetime,
        snap_minutes: int | None = None,
    ) -> CalendarEvent | None:
        """Reschedule an event by drag gesture; unknown ids are a no-op."""
        if self.get_event(event_id) is None:
            logger.debug("Drag ignored, event not in collection: %s", event_id)
            return None
        snap = snap_minutes or self.settings.snap_minutes
        self.commit(lambda events: apply_drag(events, event_id, mode, drop, snap))
        return self.get_event(event_id)

    def update_event(self, event: CalendarEvent) -> bool:
        """Replace an event by id, e.g. after an external edit dialog."""
        if self.get_event(event.id) is None:
            return False
        updated = replace(event, updated_at=datetime.now())
        self.commit(lambda events: [updated if e.id == event.id else e for e in events])
        return True

    def delete_event(self, event_id: str) -> bool:
        if self.get_event(event_id) is None:
            return False
        self.commit(lambda events: [e for e in events if e.id != event_id])
        return True

    # ------------------------------------------------------------------
    # Change propagation
    # ------------------------------------------------------------------

    def _after_change(self, before: tuple[CalendarEvent, ...]) -> None:
        self._publish(before, self.state.events)
        save_cached_events(self.store, self.state.events)
        self._react()

    def _react(self) -> None:
        before = self.state.events
        self.state = apply_auto_offset(self.state, self.conflicts(), self.auto_offset)
        if self.state.events is not before:
            self._publish(before, self.state.events)
            save_cached_events(self.store, self.state.events)

    def _publish(self, before: Sequence[CalendarEvent], after: Sequence[CalendarEvent]) -> None:
        """Tell every sink which events changed or disappeared. Failures are logged."""
        old = {e.id: e for e in before}
        new = {e.id: e for e in after}
        changed = [e for event_id, e in new.items() if old.get(event_id) != e]
        deleted = [event_id for event_id in old if event_id not in new]
        for sink in self.sinks:
            for event in changed:
                try:
                    sink.event_updated(event)
                except Exception as e:
                    logger.warning("Mutation sink failed for event '%s': %s", event.id, e)
            for event_id in deleted:
                try:
                    sink.event_deleted(event_id)
                except Exception as e:
                    logger.warning("Mutation sink failed deleting event '%s': %s", event_id, e)
