"""Local event cache used as an offline fallback."""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime
from typing import Iterable

from .base import CalendarEvent, KeyValueStore
from .serialize import event_from_dict, event_to_dict

logger = logging.getLogger("mcp-calendar-engine")

CACHE_KEY = "calendar.cachedEvents"


class MemoryStore:
    """Key-value store held in a dict. Used in tests and when no cache file is set."""

    def __init__(self, data: dict[str, str] | None = None):
        self._data = dict(data or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class JsonFileStore:
    """Key-value store persisted as a single JSON object on disk."""

    def __init__(self, path: str):
        self._path = path

    def _read(self) -> dict[str, str]:
        if not os.path.isfile(self._path):
            return {}
        with open(self._path, "r") as f:
            data = json.load(f)
        return data if isinstance(data, dict) else {}

    def get(self, key: str) -> str | None:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        os.makedirs(os.path.dirname(self._path) or ".", exist_ok=True)
        with open(self._path, "w") as f:
            json.dump(data, f)


def load_cached_events(store: KeyValueStore) -> list[CalendarEvent]:
    """Read the cached collection. Any failure yields an empty list."""
    try:
        raw = store.get(CACHE_KEY)
        if not raw:
            return []
        payload = json.loads(raw)
        events = [event_from_dict(e) for e in payload.get("events", [])]
    except Exception as e:
        logger.warning("Failed to read cached events: %s", e)
        return []
    logger.info("Loaded %d cached event(s) (cachedAt=%s)", len(events), payload.get("cachedAt"))
    return events


def save_cached_events(
    store: KeyValueStore,
    events: Iterable[CalendarEvent],
    now: datetime | None = None,
) -> bool:
    """Write the collection to the cache. Returns False if the write failed."""
    try:
        payload = {
            "events": [event_to_dict(e) for e in events],
            "cachedAt": (now or datetime.now()).isoformat(),
        }
        store.set(CACHE_KEY, json.dumps(payload))
    except Exception as e:
        logger.warning("Failed to write cached events: %s", e)
        return False
    return True
