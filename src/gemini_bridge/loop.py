"""Bounded tool-calling loop.

The model is re-dispatched with a growing text transcript until it answers
without calling a tool, the iteration bound is reached, or the shared
deadline runs out.
"""

from __future__ import annotations

import json
import logging
import time
from enum import Enum
from typing import Awaitable, Callable

from gemini_bridge.errors import BridgeError, ParseFailureError, ProcessExitError
from gemini_bridge.parsing import extract_text, parse_single
from gemini_bridge.tools.registry import ToolRegistry
from gemini_bridge.types import (
    ExecutionResult,
    Failure,
    StreamEvent,
    StreamEventType,
    Success,
    ToolCall,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 10

# (prompt, remaining_ms) -> events of one model turn
Dispatch = Callable[[str, int], Awaitable[list[StreamEvent]]]
StateListener = Callable[["LoopState"], None]


class LoopState(str, Enum):
    DISPATCH = "dispatch"
    AWAITING_RESPONSE = "awaiting_response"
    EXECUTING_TOOL = "executing_tool"
    DONE = "done"


TOOL_INSTRUCTIONS = (
    "You can inspect the workspace with these tools:\n{catalog}\n\n"
    "To call a tool, reply with only a JSON object of the form "
    '{{"tool_call": {{"name": "<tool>", "arguments": {{...}}}}}}. '
    "Tool results are appended below as [tool_result] lines. "
    "When you have enough information, reply with the final answer as plain text."
)


def build_initial_context(prompt: str, registry: ToolRegistry) -> str:
    return f"{prompt}\n\n{TOOL_INSTRUCTIONS.format(catalog=registry.describe())}"


def tool_calls_from_events(events: list[StreamEvent]) -> list[ToolCall]:
    """Native ``tool_call`` events, else a ``{"tool_call": ...}`` text reply."""
    calls = [e.tool_call for e in events if e.type == StreamEventType.TOOL_CALL and e.tool_call]
    if calls:
        return calls

    text = extract_text(events).strip()
    if not text:
        return []
    parsed = parse_single(text)
    if parsed is None:
        return []
    spec = parsed.raw.get("tool_call")
    if not isinstance(spec, dict) or not spec.get("name"):
        return []
    args = spec.get("arguments")
    return [ToolCall(name=str(spec["name"]), arguments=args if isinstance(args, dict) else {})]


def _tool_result_record(name: str, result: str) -> str:
    return "[tool_result] " + json.dumps({"name": name, "result": result}, ensure_ascii=False)


async def run_with_tools(
    prompt: str,
    registry: ToolRegistry,
    dispatch: Dispatch,
    timeout_ms: int,
    *,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
    on_state: StateListener | None = None,
) -> ExecutionResult:
    """Drive ``dispatch`` through tool rounds until the model answers.

    At most ``max_iterations`` tool rounds run; the loop then stops with the
    text gathered so far. All dispatches share one ``timeout_ms`` budget.
    Backend errors become a ``Failure``, except ``ProcessExitError``, which
    propagates to the caller.
    """
    start = time.monotonic()
    deadline = start + timeout_ms / 1000.0

    def elapsed_ms() -> int:
        return int((time.monotonic() - start) * 1000)

    def enter(state: LoopState) -> None:
        logger.debug("Tool loop -> %s", state.value)
        if on_state is not None:
            on_state(state)

    context = build_initial_context(prompt, registry)
    all_events: list[StreamEvent] = []
    answer_parts: list[str] = []
    rounds = 0

    while True:
        enter(LoopState.DISPATCH)
        remaining_ms = int((deadline - time.monotonic()) * 1000)
        if remaining_ms <= 0:
            enter(LoopState.DONE)
            return Failure(
                reason=f"timed out after {timeout_ms}ms",
                kind="timeout",
                duration_ms=elapsed_ms(),
            )

        enter(LoopState.AWAITING_RESPONSE)
        try:
            events = await dispatch(context, remaining_ms)
        except ProcessExitError:
            # The caller classifies CLI exits (authentication hints)
            enter(LoopState.DONE)
            raise
        except BridgeError as e:
            enter(LoopState.DONE)
            return Failure(reason=str(e), kind=e.kind, duration_ms=elapsed_ms())
        all_events.extend(events)

        calls = tool_calls_from_events(events)
        text = extract_text(events)
        if not calls:
            if text:
                answer_parts.append(text)
            break

        if text and not any(e.type == StreamEventType.TOOL_CALL for e in events):
            # The text was the tool-call request itself
            text = ""
        if text:
            answer_parts.append(text)
            context += f"\n\n[assistant] {text}"

        if rounds >= max_iterations:
            logger.warning("Tool loop stopped after %d rounds", rounds)
            break

        enter(LoopState.EXECUTING_TOOL)
        rounds += 1
        for call in calls:
            context += "\n\n[tool_call] " + json.dumps(
                {"name": call.name, "arguments": call.arguments}, ensure_ascii=False
            )
            result = await registry.execute(call.name, call.arguments)
            all_events.append(StreamEvent(type=StreamEventType.TOOL_RESULT, tool_result=result))
            context += "\n" + _tool_result_record(result.name, str(result.result))

    enter(LoopState.DONE)
    text = "\n".join(p.strip() for p in answer_parts if p.strip())
    if not text:
        return Failure(
            reason="failed to parse output",
            kind=ParseFailureError.kind,
            duration_ms=elapsed_ms(),
        )
    return Success(
        text=text,
        duration_ms=elapsed_ms(),
        events=all_events,
    )
