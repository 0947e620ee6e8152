"""MCP server exposing Gemini as tools, served over stdio."""

from __future__ import annotations

import logging
from typing import Any

import mcp.server.stdio
import mcp.types as types
from mcp.server.lowlevel import Server
from pydantic import BaseModel, Field, ValidationError

from gemini_bridge.config import SERVICE_NAME, BridgeConfig
from gemini_bridge.core import BridgeExecutor
from gemini_bridge.prompts import (
    analyze_code_prompt,
    query_prompt,
    validate_prompt,
    with_system_prompt,
)
from gemini_bridge.types import DEFAULT_TIMEOUT_MS, ExecutionRequest, Failure, OutputMode

logger = logging.getLogger(__name__)


class ToolCallError(Exception):
    """Raised from a tool handler; the MCP SDK turns it into an ``isError`` result."""


class QueryInput(BaseModel):
    prompt: str = Field(..., description="The research question or query")
    context: str | None = Field(None, description="Optional additional context to include")
    timeout_ms: int = Field(DEFAULT_TIMEOUT_MS, description="Timeout in milliseconds (default: 120000)")
    use_tools: bool = Field(
        False,
        description="Let Gemini read files in the workspace (read_file, search_text, list_directory)",
    )
    yolo: bool = Field(
        False,
        description="Auto-approve the Gemini CLI's own tool actions (CLI login only)",
    )


class AnalyzeCodeInput(BaseModel):
    code: str = Field(..., description="The code to analyze")
    question: str = Field(..., description="What you want to know about the code")
    language: str | None = Field(None, description="Programming language (optional, helps with context)")
    timeout_ms: int = Field(DEFAULT_TIMEOUT_MS, description="Timeout in milliseconds (default: 120000)")


class ValidateInput(BaseModel):
    proposal: str = Field(..., description="The proposal, approach, or decision to validate")
    context: str = Field(..., description="Background context for the validation")
    criteria: str | None = Field(None, description="Specific criteria to validate against (optional)")
    timeout_ms: int = Field(DEFAULT_TIMEOUT_MS, description="Timeout in milliseconds (default: 120000)")


TOOL_DESCRIPTIONS = {
    "gemini_query": (
        "Query Gemini for research, documentation lookup, or general questions. "
        "Large context window, typically a few seconds per response."
    ),
    "gemini_analyze_code": (
        "Analyze code with Gemini. Explain logic, identify issues, suggest improvements."
    ),
    "gemini_validate": (
        "Get a second opinion from Gemini on a proposal, approach, or decision. "
        "Useful for independent validation from a different model."
    ),
}

TOOL_INPUTS: dict[str, type[BaseModel]] = {
    "gemini_query": QueryInput,
    "gemini_analyze_code": AnalyzeCodeInput,
    "gemini_validate": ValidateInput,
}


class GeminiToolHandler:
    """Turns MCP tool calls into execution requests.

    The system prompt is loaded once by the caller and shared by every call.
    """

    def __init__(self, executor: BridgeExecutor, config: BridgeConfig, system_prompt: str):
        self.executor = executor
        self.config = config
        self.system_prompt = system_prompt

    def list_tools(self) -> list[types.Tool]:
        return [
            types.Tool(
                name=name,
                description=TOOL_DESCRIPTIONS[name],
                inputSchema=model.model_json_schema(),
            )
            for name, model in TOOL_INPUTS.items()
        ]

    def build_request(self, name: str, arguments: dict[str, Any]) -> ExecutionRequest:
        model = TOOL_INPUTS.get(name)
        if model is None:
            raise ToolCallError(f"Error: Unknown tool: {name}")
        try:
            params = model(**(arguments or {}))
        except ValidationError as e:
            raise ToolCallError(f"Error: invalid arguments for {name}: {e}") from e

        tools_enabled = yolo = False
        if isinstance(params, QueryInput):
            user_prompt = query_prompt(params.prompt, params.context)
            tools_enabled = params.use_tools
            yolo = params.yolo
        elif isinstance(params, AnalyzeCodeInput):
            user_prompt = analyze_code_prompt(params.code, params.question, params.language)
        else:
            user_prompt = validate_prompt(params.proposal, params.context, params.criteria)

        return ExecutionRequest(
            prompt=with_system_prompt(self.system_prompt, user_prompt),
            model=self.config.model,
            timeout_ms=params.timeout_ms,
            working_directory=str(self.config.workspace_root),
            output_mode=OutputMode.STRUCTURED,
            tools_enabled=tools_enabled,
            yolo=yolo,
        )

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> list[types.TextContent]:
        request = self.build_request(name, arguments)
        logger.info("%s called (timeout %dms)", name, request.timeout_ms)
        result = await self.executor.execute(request)
        if isinstance(result, Failure):
            logger.warning("%s failed (%s) after %dms", name, result.kind, result.duration_ms)
            raise ToolCallError(f"Error: {result.reason}")
        logger.info("%s completed in %dms", name, result.duration_ms)
        return [types.TextContent(type="text", text=result.text)]


def create_mcp_server(handler: GeminiToolHandler) -> Server:
    server = Server(SERVICE_NAME)

    @server.list_tools()
    async def list_tools() -> list[types.Tool]:
        return handler.list_tools()

    @server.call_tool()
    async def call_tool(name: str, arguments: dict) -> list[types.TextContent]:
        return await handler.call_tool(name, arguments)

    return server


async def serve_stdio(server: Server) -> None:
    """Serve MCP over stdin/stdout until the client disconnects."""
    async with mcp.server.stdio.stdio_server() as (read_stream, write_stream):
        logger.info("Gemini bridge MCP server running on stdio")
        await server.run(
            read_stream,
            write_stream,
            server.create_initialization_options(),
        )
