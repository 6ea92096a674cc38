"""Caller-facing job operations, shaped for a request/response transport."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

from reef import __version__
from reef.adapters.registry import AdapterRegistry, build_default_registry
from reef.config import Settings
from reef.manager import JobManager


@dataclass(slots=True)
class RuntimeInfo:
    """Process-wide facts reported by `info`, fixed at startup."""

    version: str
    adapters: list[str]
    started_monotonic: float = field(default_factory=time.monotonic)

    def uptime_ms(self) -> int:
        return int((time.monotonic() - self.started_monotonic) * 1000)


class ReefService:
    """Five job operations plus `info`, returning JSON-ready dictionaries."""

    def __init__(self, *, manager: JobManager, info: RuntimeInfo) -> None:
        self.manager = manager
        self.runtime_info = info

    async def spawn(
        self,
        agent: str,
        task: str,
        cwd: str = ".",
        mode: str = "headless",
    ) -> dict[str, Any]:
        job = await self.manager.spawn(agent, mode, task, cwd)
        return {"job_id": job.id, "status": job.status.value}

    def status(self, job_id: str | None = None) -> dict[str, Any]:
        if job_id is None:
            jobs = self.manager.list_jobs()
        else:
            job = self.manager.get_job(job_id)
            jobs = [job] if job is not None else []
        return {"jobs": [job.to_dict() for job in jobs]}

    async def send(self, job_id: str, message: str) -> dict[str, Any]:
        outcome = await self.manager.send(job_id, message)
        return {"ok": True, "outcome": outcome.value}

    def output(self, job_id: str, since: str | None = None) -> dict[str, Any]:
        return {"events": [event.to_dict() for event in self.manager.get_events(job_id, since)]}

    async def kill(self, job_id: str) -> dict[str, Any]:
        await self.manager.kill(job_id)
        return {"ok": True}

    def info(self) -> dict[str, Any]:
        return {
            "version": self.runtime_info.version,
            "adapters": list(self.runtime_info.adapters),
            "uptime_ms": self.runtime_info.uptime_ms(),
        }


async def build_runtime(
    settings: Settings,
    registry: AdapterRegistry | None = None,
) -> ReefService:
    """Wire registry, manager and runtime info once, restoring the last snapshot."""

    settings.validate()
    registry = registry or build_default_registry(settings.executables)
    manager = JobManager.from_settings(registry, settings)
    await manager.load_snapshot()
    return ReefService(
        manager=manager,
        info=RuntimeInfo(version=__version__, adapters=registry.names()),
    )
