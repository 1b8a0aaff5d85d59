"""Calendar page state and its undo/redo history.

The page keeps one ``CalendarState`` value. Every command below is a pure
function returning the next state; snapshots on the undo and redo stacks are
independent deep copies of the event list.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field, replace
from typing import Callable, Iterable

from .base import CalendarEvent, FilterGroup

HISTORY_LIMIT = 20

EventUpdater = Callable[[list[CalendarEvent]], Iterable[CalendarEvent]]


def clone_events(events: Iterable[CalendarEvent]) -> tuple[CalendarEvent, ...]:
    """Deep copy an event collection so no list or dict is shared."""
    return tuple(copy.deepcopy(list(events)))


@dataclass(frozen=True)
class CalendarState:
    events: tuple[CalendarEvent, ...] = ()
    undo_stack: tuple[tuple[CalendarEvent, ...], ...] = ()
    redo_stack: tuple[tuple[CalendarEvent, ...], ...] = ()
    filters: tuple[FilterGroup, ...] = ()
    search_query: str = ""
    conflict_signature: str | None = None
    history_limit: int = field(default=HISTORY_LIMIT)

    @property
    def can_undo(self) -> bool:
        return bool(self.undo_stack)

    @property
    def can_redo(self) -> bool:
        return bool(self.redo_stack)


def _push(stack: tuple, snapshot: tuple, limit: int) -> tuple:
    return (stack + (snapshot,))[-limit:] if limit > 0 else ()


def commit(state: CalendarState, updater: EventUpdater) -> CalendarState:
    """Snapshot the current events, clear redo and apply ``updater``."""
    snapshot = clone_events(state.events)
    events = tuple(updater(list(state.events)))
    return replace(
        state,
        events=events,
        undo_stack=_push(state.undo_stack, snapshot, state.history_limit),
        redo_stack=(),
    )


def undo(state: CalendarState) -> CalendarState:
    """Restore the most recent snapshot; no-op when there is nothing to undo."""
    if not state.undo_stack:
        return state
    return replace(
        state,
        events=state.undo_stack[-1],
        undo_stack=state.undo_stack[:-1],
        redo_stack=_push(state.redo_stack, clone_events(state.events), state.history_limit),
    )


def redo(state: CalendarState) -> CalendarState:
    """Re-apply the most recently undone state; no-op when redo is empty."""
    if not state.redo_stack:
        return state
    return replace(
        state,
        events=state.redo_stack[-1],
        redo_stack=state.redo_stack[:-1],
        undo_stack=_push(state.undo_stack, clone_events(state.events), state.history_limit),
    )


def set_filters(state: CalendarState, groups: Iterable[FilterGroup]) -> CalendarState:
    return replace(state, filters=tuple(groups))


def set_search_query(state: CalendarState, query: str) -> CalendarState:
    return replace(state, search_query=query or "")


def replace_events(state: CalendarState, events: Iterable[CalendarEvent]) -> CalendarState:
    """Swap in a fresh collection from the event source. History is kept as is."""
    return replace(state, events=tuple(events))
