"""Runtime configuration read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping

from gemini_bridge.errors import ConfigurationError
from gemini_bridge.types import DEFAULT_TIMEOUT_MS

SERVICE_NAME = "gemini-bridge"

DEFAULT_MODEL = "gemini-3-flash-preview"
DEFAULT_FALLBACK_MODEL = "gemini-2.5-flash"
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3101
DEFAULT_MAX_SESSIONS = 1000
DEFAULT_MAX_TOOL_ITERATIONS = 10

TRANSPORT_STDIO = "stdio"
TRANSPORT_HTTP = "http"
_TRANSPORT_ALIASES = {"stdio": TRANSPORT_STDIO, "http": TRANSPORT_HTTP, "sse": TRANSPORT_HTTP}


@dataclass(frozen=True)
class BridgeConfig:
    transport: str = TRANSPORT_STDIO
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    max_sessions: int = DEFAULT_MAX_SESSIONS
    workspace_root: Path = field(default_factory=Path.cwd)
    model: str = DEFAULT_MODEL
    fallback_model: str | None = DEFAULT_FALLBACK_MODEL
    default_timeout_ms: int = DEFAULT_TIMEOUT_MS
    max_tool_iterations: int = DEFAULT_MAX_TOOL_ITERATIONS
    log_level: str = "INFO"
    system_prompt_file: Path | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> BridgeConfig:
        """Build a config from ``MCP_*`` / ``GEMINI_*`` environment variables."""
        env = os.environ if environ is None else environ
        kwargs: dict[str, Any] = {}

        if env.get("MCP_TRANSPORT"):
            kwargs["transport"] = normalize_transport(env["MCP_TRANSPORT"])
        if env.get("MCP_HOST"):
            kwargs["host"] = env["MCP_HOST"]
        if env.get("MCP_PORT"):
            kwargs["port"] = _parse_int("MCP_PORT", env["MCP_PORT"])
        if env.get("MAX_SESSIONS"):
            kwargs["max_sessions"] = _parse_int("MAX_SESSIONS", env["MAX_SESSIONS"])
        if env.get("GEMINI_BRIDGE_WORKSPACE"):
            kwargs["workspace_root"] = Path(env["GEMINI_BRIDGE_WORKSPACE"]).expanduser()
        if env.get("GEMINI_MODEL"):
            kwargs["model"] = env["GEMINI_MODEL"]
        if "GEMINI_FALLBACK_MODEL" in env:
            kwargs["fallback_model"] = env["GEMINI_FALLBACK_MODEL"] or None
        if env.get("GEMINI_BRIDGE_TIMEOUT_MS"):
            kwargs["default_timeout_ms"] = _parse_int(
                "GEMINI_BRIDGE_TIMEOUT_MS", env["GEMINI_BRIDGE_TIMEOUT_MS"]
            )
        if env.get("GEMINI_BRIDGE_LOG_LEVEL"):
            kwargs["log_level"] = env["GEMINI_BRIDGE_LOG_LEVEL"].upper()
        if env.get("GEMINI_SYSTEM_PROMPT_FILE"):
            kwargs["system_prompt_file"] = Path(env["GEMINI_SYSTEM_PROMPT_FILE"]).expanduser()

        return cls(**kwargs).validated()

    def with_overrides(self, **overrides: Any) -> BridgeConfig:
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        if "transport" in changes:
            changes["transport"] = normalize_transport(changes["transport"])
        if "workspace_root" in changes:
            changes["workspace_root"] = Path(changes["workspace_root"])
        return replace(self, **changes).validated()

    def validated(self) -> BridgeConfig:
        if self.port <= 0 or self.port > 65535:
            raise ConfigurationError(f"Port out of range: {self.port}")
        if self.max_sessions < 1:
            raise ConfigurationError(f"MAX_SESSIONS must be at least 1, got {self.max_sessions}")
        if self.default_timeout_ms <= 0:
            raise ConfigurationError(f"Timeout must be positive, got {self.default_timeout_ms}")
        if self.max_tool_iterations < 1:
            raise ConfigurationError("max_tool_iterations must be at least 1")
        return self


def normalize_transport(value: str) -> str:
    transport = _TRANSPORT_ALIASES.get(value.strip().lower())
    if transport is None:
        raise ConfigurationError(f"Unknown transport: {value!r}. Use 'stdio' or 'http'.")
    return transport


def _parse_int(name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}", cause=e) from e
