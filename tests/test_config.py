from __future__ import annotations

from pathlib import Path

import allure
import pytest

from reef.config import DEFAULT_STATE_PATH, AgentExecutables, Settings

pytestmark = [
    allure.epic("Runtime"),
    allure.feature("Configuration"),
]


def test_from_env_uses_defaults_without_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "REEF_STATE_PATH",
        "REEF_MAX_EVENT_TAIL",
        "REEF_MAX_COMPLETED",
        "REEF_LOG_LEVEL",
        "REEF_CODEX_EXECUTABLE",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_env()

    assert settings.state_path == DEFAULT_STATE_PATH
    assert settings.max_event_tail == 200
    assert settings.max_completed == 50
    assert settings.log_level == "WARNING"
    assert settings.executables.codex == "codex"


def test_from_env_parses_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("REEF_STATE_PATH", str(tmp_path / "state.json"))
    monkeypatch.setenv("REEF_MAX_EVENT_TAIL", " 25 ")
    monkeypatch.setenv("REEF_MAX_COMPLETED", "3")
    monkeypatch.setenv("REEF_DRAIN_TIMEOUT_SECONDS", "0.5")
    monkeypatch.setenv("REEF_KILL_GRACE_SECONDS", "1")
    monkeypatch.setenv("REEF_LOG_LEVEL", "debug")
    monkeypatch.setenv("REEF_OPENCODE_EXECUTABLE", "/usr/local/bin/opencode")

    settings = Settings.from_env()

    assert settings.state_path == tmp_path / "state.json"
    assert settings.max_event_tail == 25
    assert settings.max_completed == 3
    assert settings.drain_timeout_seconds == 0.5
    assert settings.kill_grace_seconds == 1.0
    assert settings.log_level == "DEBUG"
    assert settings.executables.opencode == "/usr/local/bin/opencode"


def test_from_env_explicit_state_path_wins(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("REEF_STATE_PATH", str(tmp_path / "env.json"))

    settings = Settings.from_env(tmp_path / "cli.json")

    assert settings.state_path == tmp_path / "cli.json"


def test_from_env_rejects_invalid_integer(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("REEF_MAX_EVENT_TAIL", "many")

    with pytest.raises(ValueError, match="Invalid integer value for REEF_MAX_EVENT_TAIL"):
        Settings.from_env()


def test_from_env_rejects_invalid_number(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("REEF_KILL_GRACE_SECONDS", "soon")

    with pytest.raises(ValueError, match="Invalid numeric value for REEF_KILL_GRACE_SECONDS"):
        Settings.from_env()


@pytest.mark.parametrize(
    ("settings", "message"),
    [
        (Settings(max_event_tail=0), "REEF_MAX_EVENT_TAIL must be > 0"),
        (Settings(max_completed=-1), "REEF_MAX_COMPLETED must be > 0"),
        (Settings(drain_timeout_seconds=-0.1), "REEF_DRAIN_TIMEOUT_SECONDS must be >= 0"),
        (Settings(kill_grace_seconds=-1), "REEF_KILL_GRACE_SECONDS must be >= 0"),
        (Settings(executables=AgentExecutables(codex="  ")), "agent='codex'"),
    ],
)
def test_validate_rejects_out_of_range_settings(settings: Settings, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        settings.validate()


def test_validate_accepts_defaults() -> None:
    Settings().validate()
