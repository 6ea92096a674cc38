"""Local demo agent for process-level adapter and manager tests.

Speaks the same JSON-lines protocol as the real agents: announces a session
on `thread.started`, writes a non-JSON warning to stderr, then acts on the
task text:

- `ask`: emits `needs_input` and echoes the next stdin line back.
- `sleep`: blocks until terminated.
- `exit:<code>`: exits with that code.
- anything else: echoes the task as progress.
"""

from __future__ import annotations

import argparse
import json
import os
import sys
import time
from typing import Any

from reef.adapters.cli_adapter import CliAgentAdapter


def main(argv: list[str] | None = None) -> int:
    """Run one deterministic echo session."""

    parser = argparse.ArgumentParser()
    parser.add_argument("task")
    parser.add_argument("--session", default=None)
    args = parser.parse_args(argv)

    session_id = args.session or f"echo-{os.getpid()}"
    _emit({"type": "thread.started", "thread_id": session_id})
    print("echo-agent: warming up", file=sys.stderr, flush=True)

    task: str = args.task
    if task.startswith("exit:"):
        _emit({"type": "progress", "message": f"exiting with {task[5:]}"})
        return int(task[5:])
    if task == "sleep":
        time.sleep(60)
        return 0
    if task == "ask":
        _emit({"type": "needs_input", "question": "Pick one", "options": ["a", "b"]})
        answer = sys.stdin.readline().strip()
        _emit({"type": "progress", "message": f"answer:{answer}"})
    else:
        _emit({"type": "progress", "message": task, "resumed": args.session is not None})
    _emit({"type": "result", "session_id": session_id})
    return 0


def echo_adapter(*, accepts_stdin: bool = True) -> CliAgentAdapter:
    """Adapter running this module with the current interpreter."""

    return CliAgentAdapter(
        name="echo",
        executable=sys.executable,
        spawn_args=lambda request: ["-m", "reef.adapters.echo_agent", request.task],
        resume_args=lambda request: [
            "-m",
            "reef.adapters.echo_agent",
            "--session",
            request.session_id,
            request.task,
        ],
        accepts_stdin=accepts_stdin,
    )


def _emit(payload: dict[str, Any]) -> None:
    print(json.dumps(payload), flush=True)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
