"""Subprocess backend driving the ``gemini`` command-line tool."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Sequence

from gemini_bridge.errors import ProcessExitError
from gemini_bridge.process import OutputSink, resolve_cli_command, run_process
from gemini_bridge.types import ExecResult

logger = logging.getLogger(__name__)

Runner = Callable[..., Awaitable[ExecResult]]


def build_args(
    prompt: str,
    *,
    model: str | None = None,
    output_format: str | None = None,
    include_directories: Sequence[str] = (),
    yolo: bool = False,
) -> list[str]:
    """Build CLI arguments. Flags come first; the prompt is always last."""
    args: list[str] = []
    if model:
        args.extend(["-m", model])
    if output_format in ("json", "stream-json"):
        args.extend(["-o", output_format])
    if include_directories:
        args.extend(["--include-directories", ",".join(include_directories)])
    if yolo:
        args.append("--yolo")
    args.append(prompt)
    return args


class GeminiCliBackend:
    """Run prompts through the Gemini CLI using its stored Google login."""

    def __init__(
        self,
        command: Sequence[str] | None = None,
        runner: Runner = run_process,
    ) -> None:
        self._command = list(command) if command else None
        self._runner = runner

    @property
    def name(self) -> str:
        return "gemini-cli"

    @property
    def command(self) -> list[str]:
        # Resolved per call so a CLI installed after start-up is found
        return self._command or resolve_cli_command()

    async def run(
        self,
        prompt: str,
        *,
        model: str | None,
        timeout_ms: int,
        output_format: str | None = None,
        include_directories: Sequence[str] = (),
        yolo: bool = False,
        cwd: str | None = None,
        on_stdout: OutputSink | None = None,
        on_stderr: OutputSink | None = None,
    ) -> ExecResult:
        """Run the CLI once.

        Raises:
            ProcessExitError: the CLI exited non-zero; the message is its
                stderr, or the exit code when stderr is empty.
        """
        argv = [
            *self.command,
            *build_args(
                prompt,
                model=model,
                output_format=output_format,
                include_directories=include_directories,
                yolo=yolo,
            ),
        ]
        kwargs: dict[str, Any] = {"cwd": cwd, "timeout_ms": timeout_ms}
        if on_stdout is not None:
            kwargs["on_stdout"] = on_stdout
        if on_stderr is not None:
            kwargs["on_stderr"] = on_stderr

        result = await self._runner(argv, **kwargs)
        if result.exit_code != 0:
            message = result.stderr.strip() or f"Process exited with code {result.exit_code}"
            logger.warning("gemini CLI exited with code %d", result.exit_code)
            raise ProcessExitError(message, exit_code=result.exit_code)
        return result
