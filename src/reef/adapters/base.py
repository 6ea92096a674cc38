"""Adapter interface for external agent back-ends."""

from __future__ import annotations

from asyncio.subprocess import Process
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Protocol

from reef.models import Event, SpawnMode
from reef.streams import ByteSource


@dataclass(slots=True)
class SpawnRequest:
    """Inputs required to launch a fresh agent process."""

    task: str
    cwd: str
    mode: SpawnMode = SpawnMode.HEADLESS


@dataclass(slots=True)
class ResumeRequest:
    """Inputs required to continue an existing agent session in a new process."""

    session_id: str
    task: str
    cwd: str
    mode: SpawnMode = SpawnMode.HEADLESS


class AgentAdapter(Protocol):
    """Capabilities implemented by each agent kind.

    `resume` is only usable when `can_resume` is true.
    """

    name: str

    @property
    def can_resume(self) -> bool:
        """Whether a finished session can be continued by a new process."""

    async def spawn(self, request: SpawnRequest) -> Process:
        """Launch the agent for a new task."""

    async def resume(self, request: ResumeRequest) -> Process:
        """Launch the agent bound to an existing session."""

    def parse_output(self, stream: ByteSource) -> AsyncIterator[Event]:
        """Decode the agent's output stream into events until the stream ends."""

    async def send_input(self, process: Process, message: str) -> None:
        """Deliver a follow-up message to a live process."""
