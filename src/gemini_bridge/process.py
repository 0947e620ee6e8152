"""Subprocess runner for the Gemini CLI."""

from __future__ import annotations

import asyncio
import codecs
import logging
import os
import shutil
import signal
import time
from pathlib import Path
from typing import Callable, Mapping, Sequence

from gemini_bridge.errors import ProcessSpawnError, ProcessTimeoutError
from gemini_bridge.types import ExecResult

logger = logging.getLogger(__name__)

CLI_PACKAGE = "@google/gemini-cli"
CLI_PATH_VAR = "GEMINI_CLI_PATH"
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
VENDORED_CLI = PROJECT_ROOT / "node_modules" / ".bin" / "gemini"

# Grace period between SIGTERM and SIGKILL
_KILL_GRACE_S = 2.0
_READ_CHUNK = 4096

OutputSink = Callable[[str], None]


def resolve_cli_command(
    vendored: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> list[str]:
    """Return the argv prefix that launches the Gemini CLI.

    Order: ``GEMINI_CLI_PATH``, the vendored ``node_modules`` copy, a
    ``gemini`` on PATH, then ``npx @google/gemini-cli``.
    """
    env = os.environ if environ is None else environ
    override = env.get(CLI_PATH_VAR, "").strip()
    if override:
        return [override]

    local = vendored or VENDORED_CLI
    if local.exists():
        return [str(local)]

    on_path = shutil.which("gemini")
    if on_path:
        return [on_path]

    return ["npx", CLI_PACKAGE]


def _child_env(extra: Mapping[str, str] | None = None) -> dict[str, str]:
    env = dict(os.environ)
    env["FORCE_COLOR"] = "0"
    if extra:
        env.update(extra)
    return env


async def _pump(
    stream: asyncio.StreamReader | None,
    chunks: list[str],
    sink: OutputSink | None,
) -> None:
    if stream is None:
        return
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    while True:
        data = await stream.read(_READ_CHUNK)
        text = decoder.decode(data, final=not data)
        if text:
            chunks.append(text)
            if sink is not None:
                sink(text)
        if not data:
            return


def _signal_child(proc: asyncio.subprocess.Process, sig: int) -> None:
    try:
        if hasattr(os, "killpg"):
            os.killpg(os.getpgid(proc.pid), sig)
        elif sig == getattr(signal, "SIGKILL", None):
            proc.kill()
        else:
            proc.terminate()
    except (ProcessLookupError, OSError):
        pass


async def terminate_process(proc: asyncio.subprocess.Process) -> None:
    """SIGTERM the child's process group, escalating to SIGKILL."""
    if proc.returncode is not None:
        return
    _signal_child(proc, signal.SIGTERM)
    try:
        await asyncio.wait_for(proc.wait(), timeout=_KILL_GRACE_S)
    except asyncio.TimeoutError:
        _signal_child(proc, getattr(signal, "SIGKILL", signal.SIGTERM))
        await proc.wait()


async def run_process(
    argv: Sequence[str],
    *,
    cwd: str | None = None,
    timeout_ms: int | None = None,
    on_stdout: OutputSink | None = None,
    on_stderr: OutputSink | None = None,
    env: Mapping[str, str] | None = None,
) -> ExecResult:
    """Run ``argv`` to completion and collect its output.

    Arguments are passed straight to ``exec``; no shell is involved.

    Raises:
        ProcessSpawnError: the executable could not be started.
        ProcessTimeoutError: ``timeout_ms`` elapsed first. The child is
            terminated and any exit status it reports afterwards is ignored.
    """
    if not argv:
        raise ProcessSpawnError("Empty command")

    start = time.monotonic()
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
            env=_child_env(env),
            start_new_session=True,
        )
    except FileNotFoundError as e:
        raise ProcessSpawnError(f"Command not found: {argv[0]}", cause=e) from e
    except OSError as e:
        raise ProcessSpawnError(f"Failed to start {argv[0]}: {e}", cause=e) from e

    logger.debug("Spawned %s (pid %s)", argv[0], proc.pid)
    stdout_chunks: list[str] = []
    stderr_chunks: list[str] = []

    async def _collect() -> int:
        await asyncio.gather(
            _pump(proc.stdout, stdout_chunks, on_stdout),
            _pump(proc.stderr, stderr_chunks, on_stderr),
        )
        return await proc.wait()

    try:
        if timeout_ms is not None:
            exit_code = await asyncio.wait_for(_collect(), timeout=timeout_ms / 1000.0)
        else:
            exit_code = await _collect()
    except asyncio.TimeoutError:
        logger.warning("%s timed out after %dms, terminating pid %s", argv[0], timeout_ms, proc.pid)
        await terminate_process(proc)
        raise ProcessTimeoutError(timeout_ms or 0) from None
    except asyncio.CancelledError:
        await terminate_process(proc)
        raise

    return ExecResult(
        stdout="".join(stdout_chunks),
        stderr="".join(stderr_chunks),
        exit_code=exit_code,
        duration_ms=int((time.monotonic() - start) * 1000),
    )
