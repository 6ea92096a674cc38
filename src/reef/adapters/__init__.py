"""Agent adapter implementations."""

from reef.adapters.base import AgentAdapter, ResumeRequest, SpawnRequest
from reef.adapters.cli_adapter import (
    CliAgentAdapter,
    claude_adapter,
    codex_adapter,
    opencode_adapter,
)
from reef.adapters.jsonl import JsonlMapper, parse_json_lines
from reef.adapters.registry import AdapterRegistry, build_default_registry

__all__ = [
    "AdapterRegistry",
    "AgentAdapter",
    "CliAgentAdapter",
    "JsonlMapper",
    "ResumeRequest",
    "SpawnRequest",
    "build_default_registry",
    "claude_adapter",
    "codex_adapter",
    "opencode_adapter",
    "parse_json_lines",
]
