"""Automatic 5-minute nudge for newly formed conflicts."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import timedelta
from typing import Iterable

from .base import CalendarEvent
from .conflicts import conflict_signature
from .history import CalendarState, commit

logger = logging.getLogger("mcp-calendar-engine")

OFFSET = timedelta(minutes=5)


def _shift(events: list[CalendarEvent], ids: set[str]) -> list[CalendarEvent]:
    return [
        replace(e, start=e.start + OFFSET, end=e.end + OFFSET) if e.id in ids else e
        for e in events
    ]


def apply_auto_offset(
    state: CalendarState,
    conflicts: Iterable[str],
    enabled: bool,
) -> CalendarState:
    """React to the current conflict set.

    An empty set forgets the remembered signature. A signature not seen
    before shifts every event in it forward by five minutes in one commit.
    The offset is applied once; overlaps it leaves behind are not re-checked.
    """
    ids = set(conflicts)
    if not ids:
        if state.conflict_signature is None:
            return state
        return replace(state, conflict_signature=None)
    if not enabled:
        return state

    signature = conflict_signature(ids)
    if signature == state.conflict_signature:
        return state

    logger.info("Auto-offsetting %d conflicting event(s) by 5 minutes", len(ids))
    nudged = commit(state, lambda events: _shift(events, ids))
    return replace(nudged, conflict_signature=signature)
