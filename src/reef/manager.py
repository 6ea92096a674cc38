"""Job lifecycle coordination for external agent processes.

All job and event-tail mutations are plain synchronous methods executed on
the event loop, so they never interleave. Each live process gets one task
consuming its merged output and one task waiting for its exit; both funnel
their effects back through those methods. Snapshot writes are coalesced by a
single background writer and never block a transition.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from asyncio.subprocess import Process
from collections.abc import AsyncIterable, Coroutine
from dataclasses import replace
from enum import Enum
from typing import Any
from uuid import uuid4

from reef.adapters.base import AgentAdapter, ResumeRequest, SpawnRequest
from reef.adapters.registry import AdapterRegistry
from reef.config import Settings
from reef.errors import AgentLaunchError
from reef.event_store import EventStore
from reef.events import extract_session_id, make_event, now_timestamp, observe_timestamp
from reef.models import Event, EventKind, Job, JobStatus, Snapshot, SpawnMode
from reef.persistence import SnapshotStore
from reef.streams import merge_streams

logger = logging.getLogger(__name__)


class SendOutcome(str, Enum):
    """What happened to a follow-up message."""

    DELIVERED = "delivered"
    RESUMED = "resumed"
    DROPPED = "dropped"
    FAILED = "failed"


class JobManager:
    """Owns job records, live process handles and per-job event tails."""

    def __init__(  # noqa: PLR0913
        self,
        adapters: AdapterRegistry,
        store: SnapshotStore | None = None,
        *,
        max_event_tail: int = 200,
        max_completed: int = 50,
        drain_timeout_seconds: float = 5.0,
        kill_grace_seconds: float = 2.0,
    ) -> None:
        if max_completed <= 0:
            raise ValueError("max_completed must be > 0")
        self._adapters = adapters
        self._store = store
        self._max_completed = max_completed
        self._drain_timeout_seconds = drain_timeout_seconds
        self._kill_grace_seconds = kill_grace_seconds
        self._jobs: dict[str, Job] = {}
        self._completed: list[Job] = []
        self._events = EventStore(max_event_tail)
        self._processes: dict[str, Process] = {}
        self._watchers: dict[str, asyncio.Task[None]] = {}
        self._tasks: set[asyncio.Task[Any]] = set()
        self._snapshot_dirty = False
        self._writer: asyncio.Task[None] | None = None

    @classmethod
    def from_settings(cls, adapters: AdapterRegistry, settings: Settings) -> JobManager:
        return cls(
            adapters,
            SnapshotStore(settings.state_path),
            max_event_tail=settings.max_event_tail,
            max_completed=settings.max_completed,
            drain_timeout_seconds=settings.drain_timeout_seconds,
            kill_grace_seconds=settings.kill_grace_seconds,
        )

    # Queries

    def list_jobs(self) -> list[Job]:
        return [*self._jobs.values(), *self._completed]

    def get_job(self, job_id: str) -> Job | None:
        return self._jobs.get(job_id) or self._find_completed(job_id)

    def get_events(self, job_id: str, since: str | None = None) -> list[Event]:
        return self._events.get_since(job_id, since)

    def has_live_process(self, job_id: str) -> bool:
        return job_id in self._processes

    # State transitions

    def create_job(self, agent: str, mode: SpawnMode | str, task: str, cwd: str) -> Job:
        """Register a new running job and record its `started` event."""

        job = Job(
            id=f"job-{uuid4().hex[:12]}",
            agent=agent,
            mode=SpawnMode(mode),
            task=task,
            cwd=cwd,
            status=JobStatus.RUNNING,
            started_at=now_timestamp(),
        )
        self._jobs[job.id] = job
        started = make_event(EventKind.STARTED, job.id, {"task": task, "agent": agent})
        self._events.append(job.id, started)
        self._schedule_snapshot()
        return job

    def mark_awaiting_input(
        self,
        job_id: str,
        question: str,
        options: list[str] | None = None,
    ) -> None:
        job = self._jobs.get(job_id)
        if job is None:
            return
        job.status = JobStatus.AWAITING_INPUT
        payload = {"question": question, "options": options}
        self._events.append(job_id, make_event(EventKind.NEEDS_INPUT, job_id, payload))
        self._schedule_snapshot()

    def clear_awaiting_input(self, job_id: str, message: str) -> None:
        job = self._jobs.get(job_id)
        if job is None:
            return
        job.status = JobStatus.RUNNING
        self._events.append(job_id, make_event(EventKind.INPUT_SENT, job_id, {"message": message}))
        self._schedule_snapshot()

    def complete_job(self, job_id: str, status: JobStatus, payload: dict[str, Any]) -> None:
        """Finalize an active job and move it to the front of the completed list."""

        job = self._jobs.pop(job_id, None)
        if job is None:
            return
        if not status.is_terminal:
            raise ValueError(f"Not a terminal status: {status.value}")
        job.status = status
        job.completed_at = now_timestamp()
        kind = EventKind.COMPLETED if status is JobStatus.COMPLETED else EventKind.ERROR
        self._events.append(job_id, make_event(kind, job_id, payload))
        self._processes.pop(job_id, None)
        self._completed.insert(0, job)
        while len(self._completed) > self._max_completed:
            evicted = self._completed.pop()
            self._events.drop(evicted.id)
        logger.info("Job %s finished: status=%s %s", job_id, status.value, payload)
        self._schedule_snapshot()

    def apply_event(self, job_id: str, event: Event) -> None:
        """Record one adapter event for a job, applying its lifecycle effects."""

        normalized = replace(event, job_id=job_id)
        job = self._jobs.get(job_id)
        if job is None and self._find_completed(job_id) is None:
            logger.debug("Discarding event for unknown job %s", job_id)
            return

        session_id = extract_session_id(normalized.payload)
        if job is not None and session_id is not None and job.session_id != session_id:
            job.session_id = session_id
            self._schedule_snapshot()

        if normalized.kind is EventKind.NEEDS_INPUT and job is not None:
            question = normalized.payload.get("question")
            options = normalized.payload.get("options")
            self.mark_awaiting_input(
                job_id,
                question if isinstance(question, str) else "",
                [str(option) for option in options] if isinstance(options, list) else None,
            )
            return

        self._events.append(job_id, normalized)
        self._schedule_snapshot()

    # Process orchestration

    async def spawn(self, agent: str, mode: SpawnMode | str, task: str, cwd: str) -> Job:
        """Start an agent process for a new job.

        Raises `AdapterNotFoundError` before creating anything when the agent
        kind is unknown. A process that fails to launch leaves the job in
        `error` status.
        """

        adapter = self._adapters.require(agent)
        spawn_mode = SpawnMode(mode)
        job = self.create_job(agent, spawn_mode, task, cwd)
        try:
            process = await adapter.spawn(SpawnRequest(task=task, cwd=cwd, mode=spawn_mode))
        except AgentLaunchError as error:
            self._fail_launch(job.id, error)
            return job

        if self._jobs.get(job.id) is not job:
            # Killed while launching.
            self._start_task(self._terminate(process))
            return job
        logger.info("Job %s spawned %s (pid=%s) in %s", job.id, agent, process.pid, cwd)
        self._attach(job.id, adapter, process)
        return job

    async def send(self, job_id: str, message: str) -> SendOutcome:
        """Deliver a follow-up to a live process, or resume a finished session."""

        job = self._jobs.get(job_id)
        process = self._processes.get(job_id)
        if job is not None and process is not None:
            adapter = self._adapters.get(job.agent)
            if adapter is not None:
                await adapter.send_input(process, message)
            self.clear_awaiting_input(job_id, message)
            return SendOutcome.DELIVERED

        finished = self._find_completed(job_id)
        if finished is not None and finished.session_id:
            adapter = self._adapters.get(finished.agent)
            if adapter is not None and adapter.can_resume:
                return await self._resume(finished, adapter, message)

        logger.warning(
            "Dropped message for job %s: no live process and no resumable session",
            job_id,
        )
        return SendOutcome.DROPPED

    async def kill(self, job_id: str) -> None:
        """Terminate the job's process and finalize it without waiting for its output."""

        process = self._processes.get(job_id)
        if process is not None:
            self._start_task(self._terminate(process))
        self.complete_job(job_id, JobStatus.COMPLETED, {"reason": "killed"})

    async def wait(self, job_id: str, timeout: float | None = None) -> Job | None:
        """Wait until the job's current process exited and was finalized."""

        watcher = self._watchers.get(job_id)
        if watcher is not None:
            await asyncio.wait({watcher}, timeout=timeout)
        return self.get_job(job_id)

    async def consume_events(self, job_id: str, events: AsyncIterable[Event]) -> None:
        try:
            async for event in events:
                self.apply_event(job_id, event)
        except asyncio.CancelledError:
            raise
        except Exception as error:  # noqa: BLE001
            logger.exception("Output stream for job %s failed", job_id)
            self.apply_event(
                job_id,
                make_event(EventKind.ERROR, job_id, {"message": f"Output stream failed: {error}"}),
            )

    async def _resume(self, job: Job, adapter: AgentAdapter, message: str) -> SendOutcome:
        self._completed.remove(job)
        job.status = JobStatus.RUNNING
        job.completed_at = None
        self._jobs[job.id] = job
        self._schedule_snapshot()

        request = ResumeRequest(
            session_id=job.session_id or "",
            task=message,
            cwd=job.cwd,
            mode=job.mode,
        )
        try:
            process = await adapter.resume(request)
        except AgentLaunchError as error:
            self._fail_launch(job.id, error)
            return SendOutcome.FAILED

        if self._jobs.get(job.id) is not job:
            self._start_task(self._terminate(process))
            return SendOutcome.DROPPED
        logger.info("Job %s resumed session %s (pid=%s)", job.id, job.session_id, process.pid)
        self._attach(job.id, adapter, process)
        self.clear_awaiting_input(job.id, message)
        return SendOutcome.RESUMED

    def _attach(self, job_id: str, adapter: AgentAdapter, process: Process) -> None:
        self._processes[job_id] = process
        streams = [stream for stream in (process.stdout, process.stderr) if stream is not None]
        consumer = None
        if streams:
            consumer = self._start_task(
                self.consume_events(job_id, adapter.parse_output(merge_streams(streams))),
            )
        self._watchers[job_id] = self._start_task(self._watch_exit(job_id, process, consumer))

    async def _watch_exit(
        self,
        job_id: str,
        process: Process,
        consumer: asyncio.Task[None] | None,
    ) -> None:
        try:
            await self._finalize_on_exit(job_id, process, consumer)
        finally:
            if self._watchers.get(job_id) is asyncio.current_task():
                del self._watchers[job_id]

    async def _finalize_on_exit(
        self,
        job_id: str,
        process: Process,
        consumer: asyncio.Task[None] | None,
    ) -> None:
        returncode = await process.wait()
        if consumer is not None:
            _, pending = await asyncio.wait({consumer}, timeout=self._drain_timeout_seconds)
            if pending:
                logger.warning(
                    "Job %s output still open %.1fs after exit; finalizing anyway",
                    job_id,
                    self._drain_timeout_seconds,
                )
        if self._processes.get(job_id) is not process:
            return

        payload: dict[str, Any] = {"exit_code": returncode}
        if returncode < 0:
            try:
                payload["signal"] = signal.Signals(-returncode).name
            except ValueError:
                payload["signal"] = str(-returncode)
        status = JobStatus.COMPLETED if returncode == 0 else JobStatus.ERROR
        self.complete_job(job_id, status, payload)

    async def _terminate(self, process: Process) -> None:
        if process.returncode is not None:
            return
        try:
            process.terminate()
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(process.wait(), timeout=self._kill_grace_seconds)
        except TimeoutError:
            try:
                process.kill()
            except ProcessLookupError:
                return
            await process.wait()

    def _fail_launch(self, job_id: str, error: AgentLaunchError) -> None:
        logger.warning("Job %s failed to launch: %s", job_id, error)
        self.complete_job(
            job_id,
            JobStatus.ERROR,
            {"reason": "launch_failed", "message": str(error), "transient": error.transient},
        )

    def _find_completed(self, job_id: str) -> Job | None:
        for job in self._completed:
            if job.id == job_id:
                return job
        return None

    def _start_task(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # Persistence

    async def load_snapshot(self) -> None:
        """Restore jobs and event tails saved by a previous run.

        Jobs that were active when the previous run stopped have no process
        any more, so they rejoin the front of the completed list, where `send`
        can resume them and the completed cap applies.
        """

        if self._store is None:
            return
        snapshot = await self._store.load()
        restored = [*snapshot.jobs, *snapshot.completed][: self._max_completed]
        self._completed.extend(restored)
        restored_ids = {job.id for job in restored}
        for job_id, events in snapshot.event_tails.items():
            if job_id not in restored_ids:
                continue
            for event in events:
                self._events.append(job_id, event)
                observe_timestamp(event.timestamp)
        if snapshot.jobs or snapshot.completed:
            logger.info(
                "Restored %d active and %d completed jobs from %s",
                len(snapshot.jobs),
                len(snapshot.completed),
                self._store.path,
            )

    def build_snapshot(self) -> Snapshot:
        return Snapshot(
            jobs=[replace(job) for job in self._jobs.values()],
            completed=[replace(job) for job in self._completed[: self._max_completed]],
            event_tails=self._events.snapshot(),
        )

    def _schedule_snapshot(self) -> None:
        if self._store is None:
            return
        self._snapshot_dirty = True
        if self._writer is not None and not self._writer.done():
            return
        try:
            self._writer = asyncio.get_running_loop().create_task(self._write_snapshots())
        except RuntimeError:
            logger.debug("No running event loop; snapshot deferred until flush")

    async def _write_snapshots(self) -> None:
        if self._store is None:
            return
        while self._snapshot_dirty:
            self._snapshot_dirty = False
            snapshot = self.build_snapshot()
            try:
                await self._store.save(snapshot)
            except Exception:  # noqa: BLE001
                logger.exception("Snapshot write to %s failed", self._store.path)

    async def flush(self) -> None:
        """Wait until every scheduled snapshot has been written."""

        if self._writer is not None and not self._writer.done():
            await asyncio.wait({self._writer})
        if self._snapshot_dirty:
            await self._write_snapshots()

    async def shutdown(self) -> None:
        """Terminate live processes, stop background tasks and persist final state."""

        terminations = [self._terminate(process) for process in self._processes.values()]
        await asyncio.gather(*terminations, return_exceptions=True)
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        await self.flush()
