"""Tolerant parsers for Gemini CLI output.

The CLI can print auxiliary JSON (tool-call echoes, progress records) ahead of
the answer, so ``parse_single`` keeps the *last* complete object on its own
line.  Neither parser raises; malformed input yields ``None`` or is skipped.
"""

from __future__ import annotations

import json
from typing import Any, Iterable

from gemini_bridge.types import StreamEvent, StreamEventType, StructuredResponse


def _load_object(text: str) -> dict[str, Any] | None:
    try:
        value = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None
    return value if isinstance(value, dict) else None


def parse_single(output: str) -> StructuredResponse | None:
    """Parse ``-o json`` output into a structured response."""
    for line in reversed(output.strip().splitlines()):
        candidate = line.strip()
        if candidate.startswith("{") and candidate.endswith("}"):
            data = _load_object(candidate)
            if data is not None:
                return StructuredResponse.from_dict(data)

    data = _load_object(output)
    if data is None:
        return None
    return StructuredResponse.from_dict(data)


def parse_stream(output: str) -> list[StreamEvent]:
    """Parse ``-o stream-json`` output, one event per JSON line."""
    events: list[StreamEvent] = []
    for line in output.splitlines():
        candidate = line.strip()
        if not candidate.startswith("{"):
            continue
        data = _load_object(candidate)
        if data is None:
            continue
        events.append(StreamEvent.from_dict(data))
    return events


def extract_text(events: Iterable[StreamEvent]) -> str:
    """Concatenate the content of ``text`` events in arrival order."""
    return "".join(
        e.content for e in events if e.type == StreamEventType.TEXT and e.content
    )
