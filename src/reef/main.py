"""CLI entrypoint for reef."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

import rich_click as click

from reef import __version__
from reef.adapters.registry import build_default_registry
from reef.config import Settings
from reef.errors import AdapterNotFoundError
from reef.service import ReefService, RuntimeInfo, build_runtime

click.rich_click.USE_MARKDOWN = True
POLL_INTERVAL_SECONDS = 0.2

_STATE_PATH_OPTION = click.option(
    "--state-path",
    type=click.Path(path_type=Path),
    default=None,
    help="Snapshot file. Defaults to REEF_STATE_PATH or .reef/state.json.",
)


@click.group()
@click.version_option(version=__version__, prog_name="reef")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Logging level. Defaults to REEF_LOG_LEVEL or WARNING.",
)
def reef(log_level: str | None) -> None:
    """Run and inspect CLI coding agent jobs."""

    try:
        settings = Settings.from_env()
    except ValueError as error:
        raise click.ClickException(str(error)) from error
    level = (log_level or settings.log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@reef.command("info")
def info() -> None:
    """Show version and registered agent kinds."""

    settings = Settings.from_env()
    registry = build_default_registry(settings.executables)
    runtime_info = RuntimeInfo(version=__version__, adapters=registry.names())
    _emit_json(
        {
            "version": runtime_info.version,
            "adapters": runtime_info.adapters,
            "uptime_ms": runtime_info.uptime_ms(),
        },
    )


@reef.command("run")
@click.argument("agent")
@click.argument("task")
@click.option("--cwd", default=".", show_default=True, help="Working directory for the agent.")
@click.option(
    "--mode",
    type=click.Choice(["headless", "headful"]),
    default="headless",
    show_default=True,
)
@_STATE_PATH_OPTION
def run(agent: str, task: str, cwd: str, mode: str, state_path: Path | None) -> None:
    """Spawn an agent job and print its events as JSON lines until it finishes."""

    status = asyncio.run(_run_job(Settings.from_env(state_path), agent, task, cwd, mode))
    if status != "completed":
        raise click.ClickException(f"Job finished with status {status}.")


@reef.command("status")
@click.argument("job_id", required=False)
@_STATE_PATH_OPTION
def status(job_id: str | None, state_path: Path | None) -> None:
    """Show jobs recorded in the snapshot (restored jobs read as stale)."""

    service = asyncio.run(build_runtime(Settings.from_env(state_path)))
    _emit_json(service.status(job_id))


@reef.command("output")
@click.argument("job_id")
@click.option("--since", default=None, help="Only events after this timestamp cursor.")
@_STATE_PATH_OPTION
def output(job_id: str, since: str | None, state_path: Path | None) -> None:
    """Show the retained event tail of a job from the snapshot."""

    service = asyncio.run(build_runtime(Settings.from_env(state_path)))
    for event in service.output(job_id, since)["events"]:
        _emit_json(event)


async def _run_job(settings: Settings, agent: str, task: str, cwd: str, mode: str) -> str:
    service = await build_runtime(settings)
    try:
        spawned = await service.spawn(agent, task, cwd=cwd, mode=mode)
    except (AdapterNotFoundError, ValueError) as error:
        raise click.ClickException(str(error)) from error
    job_id = spawned["job_id"]
    try:
        return await _follow(service, job_id)
    finally:
        await service.manager.shutdown()


async def _follow(service: ReefService, job_id: str) -> str:
    cursor: str | None = None
    while True:
        for event in service.output(job_id, cursor)["events"]:
            _emit_json(event)
            cursor = event["timestamp"]
        job = service.manager.get_job(job_id)
        if job is None:
            return "unknown"
        if job.status.is_terminal and not service.manager.has_live_process(job_id):
            for event in service.output(job_id, cursor)["events"]:
                _emit_json(event)
            return job.status.value
        await asyncio.sleep(POLL_INTERVAL_SECONDS)


def _emit_json(payload: dict[str, Any]) -> None:
    click.echo(json.dumps(payload, ensure_ascii=False))


if __name__ == "__main__":  # pragma: no cover
    reef()
