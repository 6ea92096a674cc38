"""Runtime configuration for the job orchestrator."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_STATE_PATH = Path(".reef") / "state.json"


@dataclass(slots=True)
class AgentExecutables:
    """Executable names used to launch each built-in agent kind."""

    claude: str = "claude"
    codex: str = "codex"
    opencode: str = "opencode"


@dataclass(slots=True)
class Settings:
    """Orchestrator settings grouped by concern."""

    state_path: Path = DEFAULT_STATE_PATH
    max_event_tail: int = 200
    max_completed: int = 50
    drain_timeout_seconds: float = 5.0
    kill_grace_seconds: float = 2.0
    log_level: str = "WARNING"
    executables: AgentExecutables = field(default_factory=AgentExecutables)

    @classmethod
    def from_env(cls, state_path: Path | None = None) -> Settings:
        """Load settings from `REEF_*` environment variables with local defaults."""

        return cls(
            state_path=state_path or Path(os.getenv("REEF_STATE_PATH", str(DEFAULT_STATE_PATH))),
            max_event_tail=_env_int("REEF_MAX_EVENT_TAIL", default=200),
            max_completed=_env_int("REEF_MAX_COMPLETED", default=50),
            drain_timeout_seconds=_env_float("REEF_DRAIN_TIMEOUT_SECONDS", default=5.0),
            kill_grace_seconds=_env_float("REEF_KILL_GRACE_SECONDS", default=2.0),
            log_level=os.getenv("REEF_LOG_LEVEL", "WARNING").strip().upper() or "WARNING",
            executables=AgentExecutables(
                claude=os.getenv("REEF_CLAUDE_EXECUTABLE", "claude"),
                codex=os.getenv("REEF_CODEX_EXECUTABLE", "codex"),
                opencode=os.getenv("REEF_OPENCODE_EXECUTABLE", "opencode"),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error if limits are out of range."""

        if self.max_event_tail <= 0:
            raise ValueError("REEF_MAX_EVENT_TAIL must be > 0.")
        if self.max_completed <= 0:
            raise ValueError("REEF_MAX_COMPLETED must be > 0.")
        if self.drain_timeout_seconds < 0:
            raise ValueError("REEF_DRAIN_TIMEOUT_SECONDS must be >= 0.")
        if self.kill_grace_seconds < 0:
            raise ValueError("REEF_KILL_GRACE_SECONDS must be >= 0.")
        for agent in ("claude", "codex", "opencode"):
            if not getattr(self.executables, agent).strip():
                raise ValueError(f"Empty executable for agent={agent!r}")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value.strip())
    except ValueError as error:
        raise ValueError(f"Invalid integer value for {name}: {value!r}") from error


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value.strip())
    except ValueError as error:
        raise ValueError(f"Invalid numeric value for {name}: {value!r}") from error
