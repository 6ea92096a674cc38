"""Domain models for agent jobs, events and state snapshots."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class JobStatus(str, Enum):
    """Job lifecycle states."""

    RUNNING = "running"
    AWAITING_INPUT = "awaiting_input"
    COMPLETED = "completed"
    ERROR = "error"
    STALE = "stale"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.ERROR)


class SpawnMode(str, Enum):
    """How the agent process is launched."""

    HEADLESS = "headless"
    HEADFUL = "headful"


class EventKind(str, Enum):
    """Normalized event kinds; `OTHER` catches agent-specific types."""

    STARTED = "started"
    PROGRESS = "progress"
    TOOL_CALL = "tool_call"
    FILE_EDIT = "file_edit"
    NEEDS_INPUT = "needs_input"
    INPUT_SENT = "input_sent"
    ERROR = "error"
    COMPLETED = "completed"
    OTHER = "other"

    @classmethod
    def from_type(cls, value: object) -> EventKind:
        """Map a raw `type` field to a kind: missing -> progress, unknown -> other."""

        if value is None:
            return cls.PROGRESS
        if not isinstance(value, str):
            return cls.OTHER
        normalized = value.strip()
        if not normalized:
            return cls.PROGRESS
        try:
            return cls(normalized)
        except ValueError:
            return cls.OTHER


@dataclass(slots=True)
class Job:
    """One tracked invocation of an external agent process."""

    id: str
    agent: str
    mode: SpawnMode
    task: str
    cwd: str
    status: JobStatus
    started_at: str
    completed_at: str | None = None
    session_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "agent": self.agent,
            "mode": self.mode.value,
            "task": self.task,
            "cwd": self.cwd,
            "status": self.status.value,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "session_id": self.session_id,
        }

    @classmethod
    def from_dict(cls, raw: object) -> Job:
        """Deserialize and validate a job record; unknown keys are ignored."""

        if not isinstance(raw, dict):
            raise TypeError("job record must be an object")
        for key in ("id", "agent", "task", "cwd", "status", "started_at"):
            if not isinstance(raw.get(key), str):
                raise TypeError(f"job.{key} must be a string")
        if not raw["id"].strip():
            raise ValueError("job.id must be a non-empty string")
        for key in ("completed_at", "session_id"):
            value = raw.get(key)
            if value is not None and not isinstance(value, str):
                raise TypeError(f"job.{key} must be a string when provided")
        return cls(
            id=raw["id"],
            agent=raw["agent"],
            mode=SpawnMode(raw.get("mode", SpawnMode.HEADLESS.value)),
            task=raw["task"],
            cwd=raw["cwd"],
            status=JobStatus(raw["status"]),
            started_at=raw["started_at"],
            completed_at=raw.get("completed_at"),
            session_id=raw.get("session_id") or None,
        )


@dataclass(frozen=True, slots=True)
class Event:
    """One normalized unit of progress, output or status emitted by a job."""

    timestamp: str
    kind: EventKind
    job_id: str
    payload: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "kind": self.kind.value,
            "job_id": self.job_id,
            "payload": self.payload,
        }

    @classmethod
    def from_dict(cls, raw: object) -> Event:
        """Deserialize and validate an event record; unknown keys are ignored."""

        if not isinstance(raw, dict):
            raise TypeError("event record must be an object")
        timestamp = raw.get("timestamp")
        job_id = raw.get("job_id", "")
        payload = raw.get("payload", {})
        if not isinstance(timestamp, str) or not timestamp:
            raise TypeError("event.timestamp must be a non-empty string")
        if not isinstance(job_id, str):
            raise TypeError("event.job_id must be a string")
        if not isinstance(payload, dict):
            raise TypeError("event.payload must be an object")
        return cls(
            timestamp=timestamp,
            kind=EventKind.from_type(raw.get("kind")),
            job_id=job_id,
            payload=payload,
        )


@dataclass(slots=True)
class Snapshot:
    """Point-in-time copy of job and event state used for crash recovery."""

    jobs: list[Job] = field(default_factory=list)
    completed: list[Job] = field(default_factory=list)
    event_tails: dict[str, list[Event]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "jobs": [job.to_dict() for job in self.jobs],
            "completed": [job.to_dict() for job in self.completed],
            "event_tails": {
                job_id: [event.to_dict() for event in events]
                for job_id, events in self.event_tails.items()
            },
        }

    @classmethod
    def from_dict(cls, raw: object) -> Snapshot:
        """Deserialize and validate a snapshot document."""

        if not isinstance(raw, dict):
            raise TypeError("snapshot must be a JSON object")
        raw_jobs = raw.get("jobs", [])
        raw_completed = raw.get("completed", [])
        raw_tails = raw.get("event_tails", {})
        if not isinstance(raw_jobs, list):
            raise TypeError("snapshot.jobs must be an array")
        if not isinstance(raw_completed, list):
            raise TypeError("snapshot.completed must be an array")
        if not isinstance(raw_tails, dict):
            raise TypeError("snapshot.event_tails must be an object")

        event_tails: dict[str, list[Event]] = {}
        for job_id, raw_events in raw_tails.items():
            if not isinstance(raw_events, list):
                raise TypeError(f"snapshot.event_tails[{job_id!r}] must be an array")
            event_tails[job_id] = [Event.from_dict(item) for item in raw_events]
        return cls(
            jobs=[Job.from_dict(item) for item in raw_jobs],
            completed=[Job.from_dict(item) for item in raw_completed],
            event_tails=event_tails,
        )
