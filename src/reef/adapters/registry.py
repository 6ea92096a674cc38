"""Name-keyed lookup of agent adapters."""

from __future__ import annotations

from reef.adapters.base import AgentAdapter
from reef.adapters.cli_adapter import claude_adapter, codex_adapter, opencode_adapter
from reef.config import AgentExecutables
from reef.errors import AdapterNotFoundError


class AdapterRegistry:
    """Adapters registered by agent kind at startup."""

    def __init__(self) -> None:
        self._adapters: dict[str, AgentAdapter] = {}

    def register(self, name: str, adapter: AgentAdapter) -> None:
        normalized = name.strip().lower()
        if not normalized:
            raise ValueError("Adapter name must be a non-empty string")
        self._adapters[normalized] = adapter

    def get(self, name: str) -> AgentAdapter | None:
        return self._adapters.get(name.strip().lower())

    def require(self, name: str) -> AgentAdapter:
        """Return the adapter for `name` or raise `AdapterNotFoundError`."""

        adapter = self.get(name)
        if adapter is None:
            raise AdapterNotFoundError(name)
        return adapter

    def names(self) -> list[str]:
        return list(self._adapters)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.get(name) is not None


def build_default_registry(executables: AgentExecutables | None = None) -> AdapterRegistry:
    """Register the built-in claude, codex and opencode adapters."""

    executables = executables or AgentExecutables()
    registry = AdapterRegistry()
    registry.register("claude", claude_adapter(executables.claude))
    registry.register("codex", codex_adapter(executables.codex))
    registry.register("opencode", opencode_adapter(executables.opencode))
    return registry
