from __future__ import annotations

from datetime import UTC, datetime, timedelta

import allure

from reef.events import (
    default_event_mapper,
    extract_session_id,
    make_event,
    now_timestamp,
    observe_timestamp,
)
from reef.models import EventKind

pytestmark = [
    allure.epic("Agent Output"),
    allure.feature("Event Schema"),
]


def test_now_timestamp_is_fixed_width_and_strictly_increasing() -> None:
    stamps = [now_timestamp() for _ in range(200)]

    assert all(stamp.endswith("Z") and "T" in stamp for stamp in stamps)
    assert len({len(stamp) for stamp in stamps}) == 1
    assert stamps == sorted(stamps)
    assert len(set(stamps)) == len(stamps)


def test_observe_timestamp_moves_clock_past_restored_events() -> None:
    future = (datetime.now(UTC) + timedelta(seconds=1)).strftime("%Y-%m-%dT%H:%M:%S.%fZ")

    observe_timestamp(future)

    assert now_timestamp() > future


def test_event_kind_mapping_defaults_and_catch_all() -> None:
    assert EventKind.from_type(None) is EventKind.PROGRESS
    assert EventKind.from_type("") is EventKind.PROGRESS
    assert EventKind.from_type("needs_input") is EventKind.NEEDS_INPUT
    assert EventKind.from_type("thread.started") is EventKind.OTHER
    assert EventKind.from_type(42) is EventKind.OTHER


def test_default_event_mapper_keeps_whole_payload() -> None:
    payload = {"type": "item.completed", "item": {"type": "agent_message", "text": "done"}}

    event = default_event_mapper(payload)

    assert event.kind is EventKind.OTHER
    assert event.payload == payload
    assert event.job_id == ""


def test_extract_session_id_accepts_known_aliases() -> None:
    assert extract_session_id({"session_id": "s-1"}) == "s-1"
    assert extract_session_id({"thread_id": "t-1"}) == "t-1"
    assert extract_session_id({"sessionID": "o-1"}) == "o-1"
    assert extract_session_id({"sessionId": "c-1"}) == "c-1"
    assert extract_session_id({"session_id": "", "thread_id": None}) is None
    assert extract_session_id({"message": "no session"}) is None


def test_event_round_trips_through_dict() -> None:
    event = make_event(EventKind.TOOL_CALL, "job-1", {"name": "grep"})

    restored = type(event).from_dict({**event.to_dict(), "extra": "ignored"})

    assert restored == event
