"""Tests for environment configuration."""

from pathlib import Path

import pytest

from gemini_bridge.config import (
    DEFAULT_MAX_SESSIONS,
    DEFAULT_MODEL,
    DEFAULT_PORT,
    BridgeConfig,
    normalize_transport,
)
from gemini_bridge.errors import ConfigurationError


class TestFromEnv:
    def test_defaults(self):
        config = BridgeConfig.from_env({})
        assert config.transport == "stdio"
        assert config.host == "127.0.0.1"
        assert config.port == DEFAULT_PORT
        assert config.max_sessions == DEFAULT_MAX_SESSIONS
        assert config.model == DEFAULT_MODEL
        assert config.default_timeout_ms == 120_000

    def test_reads_variables(self, tmp_path):
        config = BridgeConfig.from_env({
            "MCP_TRANSPORT": "http",
            "MCP_PORT": "4000",
            "MAX_SESSIONS": "5",
            "GEMINI_BRIDGE_WORKSPACE": str(tmp_path),
            "GEMINI_MODEL": "gemini-2.5-pro",
            "GEMINI_BRIDGE_LOG_LEVEL": "debug",
        })
        assert config.transport == "http"
        assert config.port == 4000
        assert config.max_sessions == 5
        assert config.workspace_root == Path(tmp_path)
        assert config.model == "gemini-2.5-pro"
        assert config.log_level == "DEBUG"

    def test_sse_is_http_alias(self):
        assert BridgeConfig.from_env({"MCP_TRANSPORT": "SSE"}).transport == "http"

    def test_empty_fallback_disables_it(self):
        assert BridgeConfig.from_env({"GEMINI_FALLBACK_MODEL": ""}).fallback_model is None

    def test_invalid_integer(self):
        with pytest.raises(ConfigurationError, match="MCP_PORT"):
            BridgeConfig.from_env({"MCP_PORT": "abc"})

    def test_zero_sessions_rejected(self):
        with pytest.raises(ConfigurationError):
            BridgeConfig.from_env({"MAX_SESSIONS": "0"})

    def test_unknown_transport(self):
        with pytest.raises(ConfigurationError):
            normalize_transport("websocket")


class TestOverrides:
    def test_none_values_ignored(self):
        base = BridgeConfig.from_env({"MCP_PORT": "4000"})
        config = base.with_overrides(port=None, host="localhost")
        assert config.port == 4000
        assert config.host == "localhost"

    def test_transport_normalized(self):
        assert BridgeConfig().with_overrides(transport="sse").transport == "http"

    def test_workspace_becomes_path(self, tmp_path):
        config = BridgeConfig().with_overrides(workspace_root=str(tmp_path))
        assert config.workspace_root == Path(tmp_path)

    def test_invalid_port(self):
        with pytest.raises(ConfigurationError):
            BridgeConfig().with_overrides(port=70000)
