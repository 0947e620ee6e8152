"""Registry mapping tool names to their definitions."""

from __future__ import annotations

import inspect
import logging
from typing import Any, Iterable

from gemini_bridge.types import ToolDefinition, ToolResultData

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Named tools the model may call. Execution never raises."""

    def __init__(self, tools: Iterable[ToolDefinition] = ()) -> None:
        self._tools: dict[str, ToolDefinition] = {}
        for tool in tools:
            self.register(tool)

    def register(self, definition: ToolDefinition) -> None:
        """Register a tool. Latest registration wins on name collision."""
        self._tools[definition.name] = definition

    def get(self, name: str) -> ToolDefinition | None:
        return self._tools.get(name)

    def definitions(self) -> list[ToolDefinition]:
        return list(self._tools.values())

    def names(self) -> list[str]:
        return list(self._tools.keys())

    def describe(self) -> str:
        """Plain-text catalog for prompts sent to a backend without native tools."""
        lines = []
        for tool in self._tools.values():
            props = tool.parameters.get("properties", {})
            required = set(tool.parameters.get("required", []))
            args = ", ".join(
                f"{name}{'' if name in required else '?'}: {spec.get('type', 'any')}"
                for name, spec in props.items()
            )
            lines.append(f"- {tool.name}({args}): {tool.description}")
        return "\n".join(lines)

    async def execute(self, name: str, arguments: dict[str, Any]) -> ToolResultData:
        tool = self._tools.get(name)
        if tool is None or tool.execute is None:
            return ToolResultData(name=name, result=f"Unknown tool: {name}")
        try:
            if inspect.iscoroutinefunction(tool.execute):
                result = await tool.execute(**arguments)
            else:
                result = tool.execute(**arguments)
        except Exception as e:
            logger.warning("Tool %s failed: %s", name, e)
            return ToolResultData(name=name, result=f"Tool error: {e}")
        return ToolResultData(name=name, result=result if isinstance(result, str) else str(result))

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools
