"""Fakes and async helpers shared by the test modules."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from reef.adapters.base import ResumeRequest, SpawnRequest
from reef.adapters.jsonl import parse_json_lines
from reef.errors import AgentLaunchError, ResumeNotSupportedError
from reef.models import Event
from reef.streams import ByteSource


async def byte_stream(parts: Iterable[bytes | str]) -> AsyncIterator[bytes]:
    """Yield the given chunks as an async byte stream."""

    for part in parts:
        yield part.encode() if isinstance(part, str) else part
        await asyncio.sleep(0)


def jsonl(*payloads: dict[str, Any]) -> list[str]:
    return [json.dumps(payload) for payload in payloads]


async def eventually(predicate: Callable[[], bool], timeout: float = 5.0) -> None:
    """Poll until `predicate` holds or fail after `timeout` seconds."""

    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


class FakeProcess:
    """In-memory stand-in for `asyncio.subprocess.Process`."""

    def __init__(
        self,
        lines: Iterable[str] = (),
        *,
        returncode: int | None = 0,
        eof: bool = True,
    ) -> None:
        self.pid = 4242
        self.stdin = None
        self.stderr = None
        self.stdout = asyncio.StreamReader()
        for line in lines:
            self.stdout.feed_data(f"{line}\n".encode())
        if eof:
            self.stdout.feed_eof()
        self.returncode: int | None = None
        self.terminated = False
        self._exited = asyncio.Event()
        if returncode is not None:
            self.finish(returncode)

    def finish(self, returncode: int) -> None:
        if not self.stdout.at_eof():
            self.stdout.feed_eof()
        self.returncode = returncode
        self._exited.set()

    def terminate(self) -> None:
        self.terminated = True
        self.finish(-15)

    def kill(self) -> None:
        self.finish(-9)

    async def wait(self) -> int:
        await self._exited.wait()
        assert self.returncode is not None
        return self.returncode


@dataclass
class FakeAdapter:
    """Adapter handing out pre-built fake processes in order."""

    name: str = "fake"
    can_resume: bool = False
    processes: list[FakeProcess] = field(default_factory=list)
    launch_error: AgentLaunchError | None = None
    spawned: list[SpawnRequest] = field(default_factory=list)
    resumed: list[ResumeRequest] = field(default_factory=list)
    sent: list[tuple[FakeProcess, str]] = field(default_factory=list)

    async def spawn(self, request: SpawnRequest) -> FakeProcess:
        self.spawned.append(request)
        return self._next_process()

    async def resume(self, request: ResumeRequest) -> FakeProcess:
        if not self.can_resume:
            raise ResumeNotSupportedError(self.name)
        self.resumed.append(request)
        return self._next_process()

    def parse_output(self, stream: ByteSource) -> AsyncIterator[Event]:
        return parse_json_lines(stream)

    async def send_input(self, process: FakeProcess, message: str) -> None:
        self.sent.append((process, message))

    def _next_process(self) -> FakeProcess:
        if self.launch_error is not None:
            raise self.launch_error
        return self.processes.pop(0)
