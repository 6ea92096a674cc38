"""Event construction, timestamps and payload mapping helpers."""

from __future__ import annotations

import threading
from datetime import UTC, datetime, timedelta
from typing import Any

from reef.models import Event, EventKind

SESSION_ID_KEYS = ("session_id", "thread_id", "sessionID", "sessionId")
_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


class _MonotonicClock:
    """UTC wall clock whose readings never repeat or go backwards."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._last: datetime | None = None

    def now(self) -> datetime:
        with self._lock:
            current = datetime.now(UTC)
            if self._last is not None and current <= self._last:
                current = self._last + timedelta(microseconds=1)
            self._last = current
            return current

    def observe(self, timestamp: str) -> None:
        """Move the clock past an externally produced timestamp (e.g. restored events)."""

        try:
            seen = datetime.strptime(timestamp, _TIMESTAMP_FORMAT).replace(tzinfo=UTC)
        except ValueError:
            return
        with self._lock:
            if self._last is None or seen > self._last:
                self._last = seen


_CLOCK = _MonotonicClock()


def now_timestamp() -> str:
    """Return a fixed-width ISO-8601 UTC timestamp, strictly increasing per process."""

    return _CLOCK.now().strftime(_TIMESTAMP_FORMAT)


def observe_timestamp(timestamp: str) -> None:
    _CLOCK.observe(timestamp)


def make_event(kind: EventKind, job_id: str, payload: dict[str, Any]) -> Event:
    return Event(timestamp=now_timestamp(), kind=kind, job_id=job_id, payload=payload)


def default_event_mapper(payload: dict[str, Any]) -> Event:
    """Turn one decoded JSON object into an Event keyed by its own `type` field."""

    return make_event(EventKind.from_type(payload.get("type")), "", payload)


def extract_session_id(payload: dict[str, Any]) -> str | None:
    """Return the first non-empty session/thread token carried by an event payload."""

    for key in SESSION_ID_KEYS:
        value = payload.get(key)
        if isinstance(value, str) and value:
            return value
    return None
