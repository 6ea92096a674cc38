"""Tolerant JSON-lines decoding for agent output streams."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Callable
from typing import Any

from reef.events import default_event_mapper, make_event
from reef.models import Event, EventKind
from reef.streams import ByteSource, iter_chunks

JsonlMapper = Callable[[dict[str, Any]], Event]


async def parse_json_lines(
    stream: ByteSource,
    map_payload: JsonlMapper = default_event_mapper,
) -> AsyncIterator[Event]:
    """Yield one event per non-blank line, surviving chunk splits and bad lines.

    Lines that are not JSON objects become `error` events carrying the decode
    message and the raw line. An unterminated last line is decoded at end of
    stream.
    """

    buffer = bytearray()
    async for chunk in iter_chunks(stream):
        buffer.extend(chunk)
        index = buffer.find(b"\n")
        while index >= 0:
            raw_line = bytes(buffer[:index])
            del buffer[: index + 1]
            event = _decode_line(raw_line, map_payload)
            if event is not None:
                yield event
            index = buffer.find(b"\n")

    if buffer:
        event = _decode_line(bytes(buffer), map_payload)
        if event is not None:
            yield event


def _decode_line(raw_line: bytes, map_payload: JsonlMapper) -> Event | None:
    line = raw_line.decode("utf-8", errors="replace").strip()
    if not line:
        return None
    try:
        payload = json.loads(line)
    except json.JSONDecodeError as error:
        return make_event(EventKind.ERROR, "", {"message": str(error), "line": line})
    if not isinstance(payload, dict):
        message = f"Expected JSON object, got {type(payload).__name__}"
        return make_event(EventKind.ERROR, "", {"message": message, "line": line})
    return map_payload(payload)
