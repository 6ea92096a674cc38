"""Error types raised across job orchestration boundaries."""

from __future__ import annotations


class ReefError(RuntimeError):
    """Base class for orchestration errors."""


class AdapterNotFoundError(ReefError):
    """Raised when a job is requested for an agent kind that is not registered."""

    def __init__(self, agent: str) -> None:
        super().__init__(f"Unknown agent: {agent}")
        self.agent = agent


class AgentLaunchError(ReefError):
    """Agent process could not be started, with retryability hint."""

    def __init__(self, message: str, *, transient: bool) -> None:
        super().__init__(message)
        self.transient = transient


class ResumeNotSupportedError(ReefError):
    """Raised when resume is requested from an adapter without session support."""

    def __init__(self, agent: str) -> None:
        super().__init__(f"Agent {agent!r} does not support session resume")
        self.agent = agent
