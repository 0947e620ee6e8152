"""Bridge from MCP clients to Google Gemini."""

from gemini_bridge.types import (
    DEFAULT_TIMEOUT_MS,
    ExecResult,
    ExecutionRequest,
    ExecutionResult,
    Failure,
    OutputMode,
    StreamEvent,
    StreamEventType,
    StructuredResponse,
    Success,
    ToolCall,
    ToolDefinition,
)
from gemini_bridge.errors import (
    BridgeError,
    CapacityExceededError,
    ConfigurationError,
    InvalidCredentialError,
    NetworkError,
    NoCredentialError,
    ParseFailureError,
    ProcessExitError,
    ProcessSpawnError,
    ProcessTimeoutError,
    ProviderError,
    RateLimitError,
    SandboxViolationError,
)
from gemini_bridge.config import BridgeConfig
from gemini_bridge.credentials import (
    CredentialResolver,
    DelegatedCredential,
    DirectCredential,
    NoCredential,
)
from gemini_bridge.core import BridgeExecutor
from gemini_bridge.loop import run_with_tools
from gemini_bridge.parsing import extract_text, parse_single, parse_stream
from gemini_bridge.process import run_process

__version__ = "0.1.0"

__all__ = [
    # Types
    "DEFAULT_TIMEOUT_MS",
    "ExecResult",
    "ExecutionRequest",
    "ExecutionResult",
    "Failure",
    "OutputMode",
    "StreamEvent",
    "StreamEventType",
    "StructuredResponse",
    "Success",
    "ToolCall",
    "ToolDefinition",
    # Errors
    "BridgeError",
    "CapacityExceededError",
    "ConfigurationError",
    "InvalidCredentialError",
    "NetworkError",
    "NoCredentialError",
    "ParseFailureError",
    "ProcessExitError",
    "ProcessSpawnError",
    "ProcessTimeoutError",
    "ProviderError",
    "RateLimitError",
    "SandboxViolationError",
    # Components
    "BridgeConfig",
    "BridgeExecutor",
    "CredentialResolver",
    "DelegatedCredential",
    "DirectCredential",
    "NoCredential",
    "extract_text",
    "parse_single",
    "parse_stream",
    "run_process",
    "run_with_tools",
]
