"""Execution core: one prompt in, one normalized result out."""

from __future__ import annotations

import logging
import time
from typing import Callable

from gemini_bridge.config import BridgeConfig
from gemini_bridge.credentials import (
    CredentialResolver,
    CredentialState,
    DelegatedCredential,
    DirectCredential,
    NoCredential,
)
from gemini_bridge.errors import (
    BridgeError,
    NoCredentialError,
    ParseFailureError,
    ProcessExitError,
    classify_error_message,
)
from gemini_bridge.loop import run_with_tools
from gemini_bridge.parsing import extract_text, parse_single, parse_stream
from gemini_bridge.providers.cli import GeminiCliBackend
from gemini_bridge.providers.gemini import GeminiHttpBackend
from gemini_bridge.sandbox import WorkspaceSandbox
from gemini_bridge.tools.core import default_registry
from gemini_bridge.tools.registry import ToolRegistry
from gemini_bridge.types import (
    ExecutionRequest,
    ExecutionResult,
    Failure,
    OutputMode,
    StreamEvent,
    StreamEventType,
    Success,
)

logger = logging.getLogger(__name__)

NOT_AUTHENTICATED = (
    "Not authenticated. Set GEMINI_API_KEY, or run `gemini` once to log in with Google"
)
CLI_AUTH_HINT = "Run `gemini` once to log in with Google, or set GEMINI_API_KEY"

HttpBackendFactory = Callable[[str], GeminiHttpBackend]


class BridgeExecutor:
    """Routes each request to the HTTP API or the CLI based on credentials.

    ``execute`` never raises; every outcome is a ``Success`` or ``Failure``.
    """

    def __init__(
        self,
        config: BridgeConfig | None = None,
        *,
        resolver: CredentialResolver | None = None,
        http_backend_factory: HttpBackendFactory | None = None,
        cli_backend: GeminiCliBackend | None = None,
    ) -> None:
        self.config = config or BridgeConfig()
        self._resolver = resolver or CredentialResolver()
        self._http_backend_factory = http_backend_factory or self._default_http_backend
        self._cli = cli_backend or GeminiCliBackend()

    def _default_http_backend(self, api_key: str) -> GeminiHttpBackend:
        return GeminiHttpBackend(api_key, fallback_model=self.config.fallback_model)

    async def execute(self, request: ExecutionRequest) -> ExecutionResult:
        start = time.monotonic()

        def elapsed_ms() -> int:
            return int((time.monotonic() - start) * 1000)

        if request.timeout_ms <= 0:
            return Failure(
                reason=f"timeout_ms must be positive, got {request.timeout_ms}",
                kind="invalid_request",
            )

        credential = self._resolver.resolve()
        try:
            result = await self._dispatch(credential, request)
        except ProcessExitError as e:
            reason = str(e)
            kind = e.kind
            if classify_error_message(reason) == "authentication":
                reason = f"{reason}\n{CLI_AUTH_HINT}"
                kind = "invalid_credential"
            logger.warning("Gemini CLI failed: %s", e)
            return Failure(reason=reason, kind=kind, exit_code=e.exit_code, duration_ms=elapsed_ms())
        except BridgeError as e:
            logger.warning("Gemini request failed (%s): %s", e.kind, e)
            return Failure(reason=str(e), kind=e.kind, duration_ms=elapsed_ms())
        except Exception as e:
            logger.exception("Unexpected error during execution")
            return Failure(reason=f"internal error: {e}", kind="internal", duration_ms=elapsed_ms())

        if isinstance(result, Success):
            result.duration_ms = elapsed_ms()
        elif isinstance(result, Failure) and not result.duration_ms:
            result.duration_ms = elapsed_ms()
        return result

    async def _dispatch(
        self, credential: CredentialState, request: ExecutionRequest
    ) -> ExecutionResult:
        model = request.model or self.config.model
        match credential:
            case DirectCredential(secret=secret):
                logger.debug("Dispatching to Gemini API (model %s)", model)
                return await self._execute_http(secret, request, model)
            case DelegatedCredential(account_label=account):
                logger.debug("Dispatching to gemini CLI as %s (model %s)", account, model)
                return await self._execute_cli(request, model)
            case NoCredential():
                raise NoCredentialError(NOT_AUTHENTICATED)
        raise TypeError(f"unknown credential state: {credential!r}")

    def _registry(self, request: ExecutionRequest) -> ToolRegistry:
        root = request.working_directory or self.config.workspace_root
        return default_registry(WorkspaceSandbox(root))

    # -- Direct HTTP --

    async def _execute_http(
        self, secret: str, request: ExecutionRequest, model: str
    ) -> ExecutionResult:
        backend = self._http_backend_factory(secret)
        try:
            if request.tools_enabled:
                registry = self._registry(request)

                async def dispatch(prompt: str, remaining_ms: int) -> list[StreamEvent]:
                    reply = await backend.generate(
                        prompt, model=model, timeout_ms=remaining_ms,
                        tools=registry.definitions(),
                    )
                    return reply.to_events()

                return await run_with_tools(
                    request.prompt, registry, dispatch, request.timeout_ms,
                    max_iterations=self.config.max_tool_iterations,
                )

            reply = await backend.generate(request.prompt, model=model, timeout_ms=request.timeout_ms)
            if not reply.text:
                raise ParseFailureError("no text in response")
            return Success(
                text=reply.text,
                raw_structured=reply.raw,
                events=reply.to_events() if request.output_mode is OutputMode.STREAMING else None,
            )
        finally:
            await backend.close()

    # -- Gemini CLI --

    async def _execute_cli(self, request: ExecutionRequest, model: str) -> ExecutionResult:
        if request.tools_enabled:
            registry = self._registry(request)

            async def dispatch(prompt: str, remaining_ms: int) -> list[StreamEvent]:
                result = await self._cli.run(
                    prompt, model=model, timeout_ms=remaining_ms,
                    output_format="stream-json",
                    include_directories=request.include_paths,
                    yolo=request.yolo,
                    cwd=request.working_directory,
                )
                events = parse_stream(result.stdout)
                if not events and result.stdout.strip():
                    events = [StreamEvent(type=StreamEventType.TEXT, content=result.stdout.strip())]
                return events

            return await run_with_tools(
                request.prompt, registry, dispatch, request.timeout_ms,
                max_iterations=self.config.max_tool_iterations,
            )

        result = await self._cli.run(
            request.prompt,
            model=model,
            timeout_ms=request.timeout_ms,
            output_format=request.output_mode.cli_format,
            include_directories=request.include_paths,
            yolo=request.yolo,
            cwd=request.working_directory,
        )
        return self._parse_cli_output(result.stdout, request.output_mode)

    def _parse_cli_output(self, stdout: str, mode: OutputMode) -> ExecutionResult:
        if mode is OutputMode.STRUCTURED:
            parsed = parse_single(stdout)
            if parsed is not None:
                if parsed.response:
                    return Success(text=parsed.response, raw_structured=parsed.raw)
                if parsed.error:
                    message = str(parsed.error.get("message") or parsed.error)
                    return Failure(reason=message, kind=classify_error_message(message) or "api_error")
        elif mode is OutputMode.STREAMING:
            events = parse_stream(stdout)
            text = extract_text(events)
            if text:
                return Success(text=text, events=events)

        text = stdout.strip()
        if not text:
            raise ParseFailureError("failed to parse output")
        return Success(text=text)
