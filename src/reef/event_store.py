"""Bounded per-job event history with timestamp cursors."""

from __future__ import annotations

from collections import deque

from reef.models import Event


class EventStore:
    """Keeps the newest `capacity` events per job, evicting oldest first."""

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError("Event tail capacity must be > 0")
        self.capacity = capacity
        self._tails: dict[str, deque[Event]] = {}

    def append(self, job_id: str, event: Event) -> None:
        tail = self._tails.get(job_id)
        if tail is None:
            tail = deque(maxlen=self.capacity)
            self._tails[job_id] = tail
        tail.append(event)

    def get_since(self, job_id: str, since: str | None = None) -> list[Event]:
        """Return retained events newer than the `since` cursor (all when omitted)."""

        tail = self._tails.get(job_id)
        if tail is None:
            return []
        if not since:
            return list(tail)
        return [event for event in tail if event.timestamp > since]

    def drop(self, job_id: str) -> None:
        self._tails.pop(job_id, None)

    def snapshot(self) -> dict[str, list[Event]]:
        return {job_id: list(tail) for job_id, tail in self._tails.items()}

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._tails
