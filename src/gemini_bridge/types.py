"""Core type definitions for the Gemini bridge."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

DEFAULT_TIMEOUT_MS = 120_000


class OutputMode(Enum):
    TEXT = "text"
    STRUCTURED = "structured"
    STREAMING = "streaming"

    @property
    def cli_format(self) -> str | None:
        """Value for the CLI's ``-o`` flag, if any."""
        if self is OutputMode.STRUCTURED:
            return "json"
        if self is OutputMode.STREAMING:
            return "stream-json"
        return None


class StreamEventType(Enum):
    START = "start"
    TEXT = "text"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    ERROR = "error"
    END = "end"
    THINKING = "thinking"


@dataclass
class ToolCall:
    name: str = ""
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolResultData:
    name: str = ""
    result: Any = None


@dataclass
class StreamEvent:
    type: StreamEventType | str = StreamEventType.TEXT
    content: str | None = None
    tool_call: ToolCall | None = None
    tool_result: ToolResultData | None = None
    error: dict[str, Any] | None = None
    timestamp: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StreamEvent:
        raw_type = data.get("type", "")
        try:
            event_type: StreamEventType | str = StreamEventType(raw_type)
        except ValueError:
            event_type = str(raw_type)

        tool_call = None
        tc = data.get("toolCall")
        if isinstance(tc, dict):
            args = tc.get("arguments")
            tool_call = ToolCall(
                name=str(tc.get("name", "")),
                arguments=args if isinstance(args, dict) else {},
            )

        tool_result = None
        tr = data.get("toolResult")
        if isinstance(tr, dict):
            tool_result = ToolResultData(name=str(tr.get("name", "")), result=tr.get("result"))

        content = data.get("content")
        error = data.get("error")
        return cls(
            type=event_type,
            content=content if isinstance(content, str) else None,
            tool_call=tool_call,
            tool_result=tool_result,
            error=error if isinstance(error, dict) else None,
            timestamp=data.get("timestamp"),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "type": self.type.value if isinstance(self.type, StreamEventType) else self.type
        }
        if self.content is not None:
            out["content"] = self.content
        if self.tool_call is not None:
            out["toolCall"] = {"name": self.tool_call.name, "arguments": self.tool_call.arguments}
        if self.tool_result is not None:
            out["toolResult"] = {"name": self.tool_result.name, "result": self.tool_result.result}
        if self.error is not None:
            out["error"] = self.error
        if self.timestamp is not None:
            out["timestamp"] = self.timestamp
        return out


@dataclass
class StructuredResponse:
    """Document printed by ``gemini -o json``."""

    response: str | None = None
    turn_id: str | None = None
    truncated: bool = False
    usage: dict[str, Any] | None = None
    error: dict[str, Any] | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StructuredResponse:
        response = data.get("response")
        error = data.get("error")
        usage = data.get("usage")
        return cls(
            response=response if isinstance(response, str) else None,
            turn_id=data.get("turnId"),
            truncated=bool(data.get("truncated", False)),
            usage=usage if isinstance(usage, dict) else None,
            error=error if isinstance(error, dict) else None,
            raw=data,
        )


@dataclass
class ToolDefinition:
    name: str = ""
    description: str = ""
    parameters: dict[str, Any] = field(default_factory=dict)
    execute: Any = None


@dataclass(frozen=True)
class ExecutionRequest:
    prompt: str
    model: str = ""
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    working_directory: str | None = None
    include_paths: tuple[str, ...] = ()
    output_mode: OutputMode = OutputMode.STRUCTURED
    tools_enabled: bool = False
    yolo: bool = False


@dataclass
class Success:
    text: str
    duration_ms: int = 0
    raw_structured: dict[str, Any] | None = None
    events: list[StreamEvent] | None = None

    @property
    def ok(self) -> bool:
        return True


@dataclass
class Failure:
    reason: str
    kind: str = "error"
    duration_ms: int = 0
    exit_code: int | None = None

    @property
    def ok(self) -> bool:
        return False


ExecutionResult = Union[Success, Failure]


@dataclass
class ExecResult:
    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0
    duration_ms: int = 0


@dataclass
class DirEntry:
    name: str = ""
    is_dir: bool = False
    size: int | None = None
