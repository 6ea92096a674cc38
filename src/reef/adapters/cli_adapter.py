"""Subprocess-based adapters for CLI coding agents."""

from __future__ import annotations

import asyncio
import logging
from asyncio.subprocess import Process
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass

from reef.adapters.base import ResumeRequest, SpawnRequest
from reef.adapters.jsonl import JsonlMapper, parse_json_lines
from reef.errors import AgentLaunchError, ResumeNotSupportedError
from reef.events import default_event_mapper
from reef.models import Event
from reef.streams import ByteSource

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CliAgentAdapter:
    """One agent kind launched as `executable *args`, speaking JSON lines on stdout.

    The presence of `resume_args` is what makes the adapter resume-capable.
    Adapters with `accepts_stdin=False` get a closed stdin and can only take
    follow-ups through resume.
    """

    name: str
    executable: str
    spawn_args: Callable[[SpawnRequest], list[str]]
    resume_args: Callable[[ResumeRequest], list[str]] | None = None
    accepts_stdin: bool = True
    map_payload: JsonlMapper = default_event_mapper

    @property
    def can_resume(self) -> bool:
        return self.resume_args is not None

    async def spawn(self, request: SpawnRequest) -> Process:
        return await self._launch(self.spawn_args(request), cwd=request.cwd)

    async def resume(self, request: ResumeRequest) -> Process:
        if self.resume_args is None:
            raise ResumeNotSupportedError(self.name)
        return await self._launch(self.resume_args(request), cwd=request.cwd)

    def parse_output(self, stream: ByteSource) -> AsyncIterator[Event]:
        return parse_json_lines(stream, self.map_payload)

    async def send_input(self, process: Process, message: str) -> None:
        if not self.accepts_stdin or process.stdin is None:
            logger.debug("Agent %s takes no stdin input; message not written", self.name)
            return
        try:
            process.stdin.write(f"{message}\n".encode())
            await process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as error:
            logger.warning("Agent %s stdin closed (pid=%s): %s", self.name, process.pid, error)

    async def _launch(self, args: list[str], *, cwd: str) -> Process:
        try:
            return await asyncio.create_subprocess_exec(
                self.executable,
                *args,
                cwd=cwd,
                stdin=asyncio.subprocess.PIPE if self.accepts_stdin else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as error:
            raise AgentLaunchError(
                f"Agent command not found: {self.executable} (cwd={cwd})",
                transient=False,
            ) from error
        except OSError as error:
            raise AgentLaunchError(
                f"Agent {self.name} failed to start: {error}",
                transient=True,
            ) from error


def claude_adapter(executable: str = "claude") -> CliAgentAdapter:
    """Claude Code in print mode with streamed JSON; follow-ups go over stdin."""

    return CliAgentAdapter(
        name="claude",
        executable=executable,
        spawn_args=lambda request: ["-p", request.task, "-y", "--output-format", "stream-json"],
    )


def codex_adapter(executable: str = "codex") -> CliAgentAdapter:
    """Codex exec in JSON mode; `thread_id` from `thread.started` is the session token."""

    return CliAgentAdapter(
        name="codex",
        executable=executable,
        spawn_args=lambda request: ["exec", "--json", "--full-auto", request.task],
        resume_args=lambda request: [
            "exec",
            "resume",
            request.session_id,
            "--json",
            "--full-auto",
            request.task,
        ],
    )


def opencode_adapter(executable: str = "opencode") -> CliAgentAdapter:
    """OpenCode one-shot runs; follow-ups only through `--session` resume."""

    return CliAgentAdapter(
        name="opencode",
        executable=executable,
        spawn_args=lambda request: ["run", "--format", "json", request.task],
        resume_args=lambda request: [
            "run",
            "--format",
            "json",
            "--session",
            request.session_id,
            request.task,
        ],
        accepts_stdin=False,
    )
