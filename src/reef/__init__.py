"""Orchestrator for long-running CLI coding agents.

Each job wraps one external agent process (claude, codex, opencode). The
process's JSON-lines output is merged, parsed and normalized into `Event`
records, kept in a bounded per-job tail, and snapshotted to disk so that a
restart can show what happened before it.
"""

__version__ = "0.1.0"
