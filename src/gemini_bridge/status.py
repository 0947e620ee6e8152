"""Installation and authentication checks for ``gemini-bridge doctor``."""

from __future__ import annotations

import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from gemini_bridge.config import BridgeConfig
from gemini_bridge.credentials import CredentialResolver, NoCredential, describe
from gemini_bridge.errors import BridgeError
from gemini_bridge.process import resolve_cli_command, run_process
from gemini_bridge.prompts import load_system_prompt
from gemini_bridge.providers.cli import Runner

VERSION_TIMEOUT_MS = 30_000


@dataclass
class BridgeStatus:
    installed: bool
    authenticated: bool
    auth_method: str
    executable: str
    error: str | None = None


@dataclass
class CheckResult:
    name: str
    passed: bool
    message: str
    fix: str | None = None


def _executable_available(command: Sequence[str]) -> bool:
    head = command[0]
    if os.sep in head:
        return Path(head).exists()
    return shutil.which(head) is not None


def check_status(
    resolver: CredentialResolver | None = None,
    command: Sequence[str] | None = None,
) -> BridgeStatus:
    """Report CLI availability and the active credential. No network I/O."""
    resolver = resolver or CredentialResolver()
    command = list(command) if command else resolve_cli_command()
    state = resolver.resolve()
    authenticated = not isinstance(state, NoCredential)
    return BridgeStatus(
        installed=_executable_available(command),
        authenticated=authenticated,
        auth_method=describe(state),
        executable=" ".join(command),
        error=None if authenticated else "Set GEMINI_API_KEY, or run `gemini` once to log in with Google",
    )


async def _check_cli(command: Sequence[str], runner: Runner) -> CheckResult:
    try:
        result = await runner([*command, "--version"], timeout_ms=VERSION_TIMEOUT_MS)
    except BridgeError as e:
        return CheckResult("Gemini CLI", False, f"Gemini CLI not available: {e}",
                           fix="Install it with: npm install -g @google/gemini-cli")
    if result.exit_code != 0:
        return CheckResult("Gemini CLI", False,
                           f"`{' '.join(command)} --version` exited with code {result.exit_code}",
                           fix="Reinstall with: npm install -g @google/gemini-cli")
    version = result.stdout.strip().splitlines()[0] if result.stdout.strip() else "unknown version"
    return CheckResult("Gemini CLI", True, f"Gemini CLI is available ({version})")


def _check_auth(resolver: CredentialResolver) -> CheckResult:
    state = resolver.resolve()
    if isinstance(state, NoCredential):
        return CheckResult("Authentication", False, "Not authenticated with Gemini",
                           fix="Set GEMINI_API_KEY, or run `gemini` once to log in with Google")
    return CheckResult("Authentication", True, describe(state))


def _check_workspace(config: BridgeConfig) -> CheckResult:
    root = Path(config.workspace_root)
    if root.is_dir():
        return CheckResult("Workspace", True, f"Tools are confined to {root.resolve()}")
    return CheckResult("Workspace", False, f"Workspace {root} is not a directory",
                       fix="Set GEMINI_BRIDGE_WORKSPACE to an existing directory")


def _check_system_prompt(config: BridgeConfig) -> CheckResult:
    if not config.system_prompt_file:
        return CheckResult("System prompt", True, "Using the built-in system prompt")
    try:
        load_system_prompt(config.system_prompt_file)
    except BridgeError as e:
        return CheckResult("System prompt", False, str(e),
                           fix="Fix or unset GEMINI_SYSTEM_PROMPT_FILE")
    return CheckResult("System prompt", True, f"Loaded from {config.system_prompt_file}")


async def run_doctor_checks(
    config: BridgeConfig | None = None,
    resolver: CredentialResolver | None = None,
    command: Sequence[str] | None = None,
    runner: Runner = run_process,
) -> list[CheckResult]:
    config = config or BridgeConfig()
    resolver = resolver or CredentialResolver()
    command = list(command) if command else resolve_cli_command()
    return [
        await _check_cli(command, runner),
        _check_auth(resolver),
        _check_workspace(config),
        _check_system_prompt(config),
    ]
