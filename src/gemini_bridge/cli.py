"""CLI entry point for the Gemini bridge."""

from __future__ import annotations

import asyncio
import logging
import sys

import click

from gemini_bridge.config import TRANSPORT_HTTP, BridgeConfig
from gemini_bridge.core import BridgeExecutor
from gemini_bridge.credentials import CredentialResolver, describe
from gemini_bridge.errors import ConfigurationError
from gemini_bridge.http_app import serve_http
from gemini_bridge.prompts import load_system_prompt
from gemini_bridge.server import GeminiToolHandler, create_mcp_server, serve_stdio
from gemini_bridge.sessions import HttpSessionManager, SessionRegistry
from gemini_bridge.status import run_doctor_checks
from gemini_bridge.types import ExecutionRequest, Failure, OutputMode

logger = logging.getLogger("gemini_bridge")


def configure_logging(level: str) -> None:
    # stdout carries the MCP protocol in stdio mode
    logging.basicConfig(
        stream=sys.stderr,
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_config(**overrides) -> BridgeConfig:
    try:
        return BridgeConfig.from_env().with_overrides(**overrides)
    except ConfigurationError as e:
        raise click.UsageError(str(e)) from e


@click.group()
def main():
    """Gemini bridge: query Google Gemini over MCP."""
    pass


@main.command()
@click.option("--transport", type=click.Choice(["stdio", "http", "sse"]), default=None,
              help="Transport (default: $MCP_TRANSPORT or stdio)")
@click.option("--host", default=None, help="Host to bind in http mode")
@click.option("--port", default=None, type=int, help="Port to bind in http mode")
@click.option("--max-sessions", default=None, type=int, help="Maximum concurrent HTTP sessions")
@click.option("--workspace", default=None, type=click.Path(exists=True, file_okay=False),
              help="Directory the file tools are confined to")
def serve(transport, host, port, max_sessions, workspace):
    """Run the MCP server."""
    config = _load_config(
        transport=transport, host=host, port=port,
        max_sessions=max_sessions, workspace_root=workspace,
    )
    configure_logging(config.log_level)
    try:
        system_prompt = load_system_prompt(config.system_prompt_file)
    except ConfigurationError as e:
        raise click.UsageError(str(e)) from e

    state = CredentialResolver().resolve()
    logger.info("Authentication: %s", describe(state))

    handler = GeminiToolHandler(BridgeExecutor(config), config, system_prompt)
    server = create_mcp_server(handler)
    try:
        if config.transport == TRANSPORT_HTTP:
            manager = HttpSessionManager(server, SessionRegistry(config.max_sessions))
            asyncio.run(serve_http(config, manager))
        else:
            asyncio.run(serve_stdio(server))
    except KeyboardInterrupt:
        logger.info("Server stopped by user")


@main.command()
@click.argument("prompt")
@click.option("--model", default=None, help="Gemini model (default: $GEMINI_MODEL)")
@click.option("--timeout-ms", default=None, type=int, help="Timeout in milliseconds")
@click.option("--output-mode", type=click.Choice([m.value for m in OutputMode]),
              default=OutputMode.STRUCTURED.value, help="CLI output mode")
@click.option("--tools", "tools_enabled", is_flag=True, help="Allow workspace file tools")
@click.option("--yolo", is_flag=True, help="Auto-approve the Gemini CLI's own tool actions")
@click.option("--include", "include_paths", multiple=True, help="Extra directory for the CLI backend")
def query(prompt, model, timeout_ms, output_mode, tools_enabled, yolo, include_paths):
    """Run one prompt and print the answer."""
    config = _load_config(model=model)
    configure_logging(config.log_level)
    request = ExecutionRequest(
        prompt=prompt,
        model=config.model,
        timeout_ms=timeout_ms if timeout_ms is not None else config.default_timeout_ms,
        working_directory=str(config.workspace_root),
        include_paths=tuple(include_paths),
        output_mode=OutputMode(output_mode),
        tools_enabled=tools_enabled,
        yolo=yolo,
    )
    result = asyncio.run(BridgeExecutor(config).execute(request))
    if isinstance(result, Failure):
        click.echo(f"Error ({result.kind}): {result.reason}", err=True)
        sys.exit(1)
    click.echo(result.text)


@main.command()
def doctor():
    """Check CLI installation and authentication."""
    config = _load_config()
    checks = asyncio.run(run_doctor_checks(config))

    all_passed = True
    for check in checks:
        mark = "ok" if check.passed else "FAIL"
        click.echo(f"[{mark}] {check.name}: {check.message}")
        if not check.passed:
            all_passed = False
            if check.fix:
                click.echo(f"       Fix: {check.fix}")

    if not all_passed:
        click.echo("\nSome checks failed.")
        sys.exit(1)
    click.echo("\nAll checks passed.")


if __name__ == "__main__":
    main()
