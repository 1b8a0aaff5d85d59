"""Quick-add line parsing, e.g. ``"Team sync tomorrow 2pm-3pm #eng"``."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, time, timedelta

DEFAULT_TITLE = "Untitled event"
DEFAULT_START = time(9, 0)
DEFAULT_DURATION = timedelta(minutes=60)

_CALENDAR_HINT = re.compile(r"#([\w.-]+)")
_DAY_KEYWORD = re.compile(r"\b(today|tomorrow)\b", re.IGNORECASE)
_TIME_RANGE = re.compile(
    r"\b(\d{1,2})(?::([0-5]\d))?\s*(am|pm)?\s*-\s*(\d{1,2})(?::([0-5]\d))?\s*(am|pm)?\b",
    re.IGNORECASE,
)


@dataclass
class QuickAddDraft:
    title: str
    start: datetime
    end: datetime
    calendar_id: str | None = None


def _to_24h(hour: str, minute: str | None, meridiem: str | None) -> time:
    value = int(hour) % 12
    if meridiem and meridiem.lower() == "pm":
        value += 12
    return time(value, int(minute or 0))


def parse_quick_add(
    text: str,
    fallback: datetime,
    today: datetime | None = None,
) -> QuickAddDraft | None:
    """Parse a quick-add line into draft event fields.

    ``fallback`` is the base date when no day keyword is present; ``today``
    anchors ``today``/``tomorrow`` and defaults to ``fallback``. Returns None
    for blank input.
    """
    if not text or not text.strip():
        return None
    remaining = text

    calendar_id = None
    hint = _CALENDAR_HINT.search(remaining)
    if hint:
        # "#eng." at the end of a sentence names calendar.eng
        token = hint.group(1).rstrip(".-").lower()
        calendar_id = f"calendar.{token}" if token else None
        remaining = remaining[:hint.start()] + remaining[hint.end():]

    base = fallback.date()
    keyword = _DAY_KEYWORD.search(remaining)
    if keyword:
        anchor = (today or fallback).date()
        base = anchor + timedelta(days=1) if keyword.group(1).lower() == "tomorrow" else anchor
        remaining = remaining[:keyword.start()] + remaining[keyword.end():]

    span = _TIME_RANGE.search(remaining)
    if span:
        start_h, start_m, start_mer, end_h, end_m, end_mer = span.groups()
        start = datetime.combine(base, _to_24h(start_h, start_m, start_mer))
        end = datetime.combine(base, _to_24h(end_h, end_m, end_mer))
        if end <= start:
            end = start + DEFAULT_DURATION
        remaining = remaining[:span.start()] + remaining[span.end():]
    else:
        start = datetime.combine(base, DEFAULT_START)
        end = start + DEFAULT_DURATION

    title = " ".join(remaining.split()) or DEFAULT_TITLE
    return QuickAddDraft(title=title, start=start, end=end, calendar_id=calendar_id)
