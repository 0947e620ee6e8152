"""FastAPI application serving MCP sessions over HTTP."""

from __future__ import annotations

import asyncio
import logging
import re
import signal
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI
from starlette.datastructures import Headers
from starlette.responses import JSONResponse
from starlette.routing import Route
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from gemini_bridge.config import SERVICE_NAME, BridgeConfig
from gemini_bridge.sessions import HttpSessionManager

logger = logging.getLogger(__name__)

# Graceful-shutdown budget for open streams, in seconds
SHUTDOWN_TIMEOUT_S = 5

_LOOPBACK_HOST = re.compile(r"^(localhost|127\.0\.0\.1|\[::1\])(:\d+)?$", re.IGNORECASE)


def is_loopback_host(host: str | None) -> bool:
    return bool(host) and _LOOPBACK_HOST.match(host.strip()) is not None


class HostValidationMiddleware:
    """Reject requests whose ``Host`` header is not a loopback name."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http":
            host = Headers(scope=scope).get("host")
            if not is_loopback_host(host):
                logger.warning("Rejected request with Host header %r", host)
                response = JSONResponse({"error": "Invalid Host header"}, status_code=400)
                await response(scope, receive, send)
                return
        await self.app(scope, receive, send)


class McpEndpoint:
    """ASGI endpoint for ``/mcp``; errors are logged, never propagated."""

    def __init__(self, manager: HttpSessionManager) -> None:
        self.manager = manager

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        started = False

        async def tracking_send(message: Message) -> None:
            nonlocal started
            if message["type"] == "http.response.start":
                started = True
            await send(message)

        try:
            await self.manager.handle_request(scope, receive, tracking_send)
        except Exception:
            logger.exception("Error handling MCP request")
            if not started:
                response = JSONResponse({"error": "Internal server error"}, status_code=500)
                await response(scope, receive, send)


def create_app(manager: HttpSessionManager) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        async with manager.run():
            logger.info("MCP session manager started (capacity %d)", manager.registry.capacity)
            yield
        logger.info("All MCP sessions terminated")

    app = FastAPI(title="Gemini Bridge", lifespan=lifespan, docs_url=None, redoc_url=None)
    app.add_middleware(HostValidationMiddleware)

    @app.get("/health")
    async def health():
        return {"status": "healthy", "service": SERVICE_NAME}

    app.router.routes.append(Route("/mcp", endpoint=McpEndpoint(manager)))
    return app


class GracefulServer(uvicorn.Server):
    """Stops accepting MCP sessions as soon as a shutdown signal arrives."""

    def __init__(self, config: uvicorn.Config, manager: HttpSessionManager) -> None:
        super().__init__(config)
        self.manager = manager

    def handle_exit(self, sig: int, frame: Any) -> None:
        try:
            name = signal.Signals(sig).name
        except ValueError:
            name = str(sig)
        logger.info("%s received, starting graceful shutdown", name)
        self.manager.stop_accepting()
        super().handle_exit(sig, frame)


def log_loop_exception(loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
    """Log errors from orphaned tasks and callbacks; the server keeps running."""
    logger.error(
        "Unhandled error in event loop: %s",
        context.get("message", "unknown"),
        exc_info=context.get("exception"),
    )


async def serve_http(config: BridgeConfig, manager: HttpSessionManager) -> None:
    asyncio.get_running_loop().set_exception_handler(log_loop_exception)
    app = create_app(manager)
    uv_config = uvicorn.Config(
        app,
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
        timeout_graceful_shutdown=SHUTDOWN_TIMEOUT_S,
    )
    logger.info("Gemini bridge running on http://%s:%d/mcp", config.host, config.port)
    await GracefulServer(uv_config, manager).serve()
    logger.info("Graceful shutdown complete")
