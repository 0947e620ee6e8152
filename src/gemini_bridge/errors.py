"""Error hierarchy for the Gemini bridge."""

from __future__ import annotations

from typing import Any


class BridgeError(Exception):
    """Base error for all bridge errors."""

    kind = "error"

    def __init__(self, message: str, *, cause: Exception | None = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    @property
    def retryable(self) -> bool:
        return False


# Authentication errors

class NoCredentialError(BridgeError):
    kind = "no_credential"


class InvalidCredentialError(BridgeError):
    kind = "invalid_credential"

    def __init__(self, message: str, *, status_code: int = 401, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.status_code = status_code


# Provider errors

class ProviderError(BridgeError):
    """Non-2xx reply from the Gemini API."""

    kind = "api_error"

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        raw: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message, cause=cause)
        self.status_code = status_code
        self.raw = raw

    @property
    def retryable(self) -> bool:
        return self.status_code is not None and self.status_code >= 500


class InvalidRequestError(ProviderError):
    kind = "invalid_request"

    def __init__(self, message: str, **kwargs: Any):
        kwargs.setdefault("status_code", 400)
        super().__init__(message, **kwargs)


class ModelNotFoundError(ProviderError):
    kind = "model_not_found"

    def __init__(self, message: str, **kwargs: Any):
        kwargs.setdefault("status_code", 404)
        super().__init__(message, **kwargs)


class RateLimitError(ProviderError):
    kind = "rate_limited"

    def __init__(self, message: str, **kwargs: Any):
        kwargs.setdefault("status_code", 429)
        super().__init__(message, **kwargs)

    @property
    def retryable(self) -> bool:
        return True


class NetworkError(BridgeError):
    kind = "network_error"

    @property
    def retryable(self) -> bool:
        return True


class RequestTimeoutError(NetworkError):
    kind = "request_timeout"


# Subprocess errors

class ProcessSpawnError(BridgeError):
    kind = "process_spawn"


class ProcessTimeoutError(BridgeError):
    kind = "process_timeout"

    def __init__(self, timeout_ms: int, **kwargs: Any):
        super().__init__(f"timed out after {timeout_ms}ms", **kwargs)
        self.timeout_ms = timeout_ms


class ProcessExitError(BridgeError):
    kind = "process_exit"

    def __init__(self, message: str, *, exit_code: int, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.exit_code = exit_code


# Output / tool errors

class ParseFailureError(BridgeError):
    kind = "parse_failure"


class SandboxViolationError(BridgeError):
    kind = "sandbox_violation"


# Transport errors

class CapacityExceededError(BridgeError):
    kind = "capacity_exceeded"


class ConfigurationError(BridgeError):
    kind = "configuration"


def classify_error_message(message: str) -> str | None:
    """Classify CLI stderr text that does not map to a specific error."""
    msg = message.lower()
    if "not authenticated" in msg or "login" in msg or "api key" in msg:
        return "authentication"
    if "quota" in msg or "rate limit" in msg or "resource_exhausted" in msg:
        return "rate_limited"
    if "not found" in msg and "model" in msg:
        return "not_found"
    return None
