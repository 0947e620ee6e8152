"""Capacity-bounded MCP sessions over streamable HTTP."""

from __future__ import annotations

import json
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator
from uuid import uuid4

import anyio
from anyio.abc import TaskGroup, TaskStatus
from mcp.server.lowlevel import Server
from mcp.server.streamable_http import MCP_SESSION_ID_HEADER, StreamableHTTPServerTransport
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import Message, Receive, Scope, Send

from gemini_bridge.errors import CapacityExceededError

logger = logging.getLogger(__name__)

CAPACITY_MESSAGE = "Server at capacity"
SHUTDOWN_MESSAGE = "Server shutting down"


@dataclass
class Session:
    id: str
    created_at: float = field(default_factory=time.time)


class SessionRegistry:
    """Live session set. Creation beyond ``capacity`` is rejected, never queued."""

    def __init__(self, capacity: int) -> None:
        self.capacity = capacity
        self.accepting = True
        self._sessions: dict[str, Session] = {}

    def open(self, session_id: str | None = None) -> Session:
        if not self.accepting:
            raise CapacityExceededError(SHUTDOWN_MESSAGE)
        if len(self._sessions) >= self.capacity:
            logger.warning("Max session limit reached (%d), rejecting new session", self.capacity)
            raise CapacityExceededError(CAPACITY_MESSAGE)
        session = Session(id=session_id or uuid4().hex)
        self._sessions[session.id] = session
        logger.info("Session opened: %s (%d/%d)", session.id, len(self), self.capacity)
        return session

    def close(self, session_id: str) -> bool:
        if self._sessions.pop(session_id, None) is None:
            return False
        logger.info("Session closed: %s (%d/%d)", session_id, len(self), self.capacity)
        return True

    def ids(self) -> list[str]:
        return list(self._sessions)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions


def _jsonrpc_error(status_code: int, message: str, request_id: Any = None) -> Response:
    return JSONResponse(
        {"jsonrpc": "2.0", "id": request_id, "error": {"code": -32000, "message": message}},
        status_code=status_code,
    )


def _is_initialize(payload: Any) -> bool:
    if isinstance(payload, list):
        return any(_is_initialize(item) for item in payload)
    return isinstance(payload, dict) and payload.get("method") == "initialize"


def _request_id(payload: Any) -> Any:
    return payload.get("id") if isinstance(payload, dict) else None


def _replay(body: bytes, receive: Receive) -> Receive:
    """A ``receive`` that yields an already-read body once, then defers."""
    delivered = False

    async def replay() -> Message:
        nonlocal delivered
        if not delivered:
            delivered = True
            return {"type": "http.request", "body": body, "more_body": False}
        return await receive()

    return replay


class HttpSessionManager:
    """Runs one MCP server session per ``mcp-session-id``.

    A request without a session id opens a session only when it is an
    ``initialize`` POST; every session shares the same low-level ``Server``.
    """

    def __init__(
        self,
        server: Server,
        registry: SessionRegistry,
        *,
        json_response: bool = False,
    ) -> None:
        self.server = server
        self.registry = registry
        self.json_response = json_response
        self._transports: dict[str, StreamableHTTPServerTransport] = {}
        self._task_group: TaskGroup | None = None

    @asynccontextmanager
    async def run(self) -> AsyncIterator[None]:
        """Own the task group that session servers run in."""
        async with anyio.create_task_group() as tg:
            self._task_group = tg
            try:
                yield
            finally:
                self.stop_accepting()
                await self.terminate_all()
                tg.cancel_scope.cancel()
                self._task_group = None

    def stop_accepting(self) -> None:
        if self.registry.accepting:
            logger.info("No longer accepting new sessions")
        self.registry.accepting = False

    async def terminate_all(self) -> None:
        for session_id, transport in list(self._transports.items()):
            try:
                await transport.terminate()
            except Exception:
                logger.exception("Error terminating session %s", session_id)
            self._forget(session_id)

    def _forget(self, session_id: str) -> None:
        self._transports.pop(session_id, None)
        self.registry.close(session_id)

    async def handle_request(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive)
        session_id = request.headers.get(MCP_SESSION_ID_HEADER)

        if session_id is not None:
            transport = self._transports.get(session_id)
            if transport is None:
                response = _jsonrpc_error(404, "Session not found")
                await response(scope, receive, send)
                return
            await transport.handle_request(scope, receive, send)
            if transport.is_terminated:
                self._forget(session_id)
            return

        if request.method != "POST":
            await _jsonrpc_error(400, "Bad Request: No valid session ID provided")(scope, receive, send)
            return

        body = await request.body()
        try:
            payload = json.loads(body)
        except ValueError:
            payload = None
        if not _is_initialize(payload):
            await _jsonrpc_error(400, "Bad Request: No valid session ID provided", _request_id(payload))(
                scope, receive, send
            )
            return

        try:
            session = self.registry.open()
        except CapacityExceededError as e:
            await _jsonrpc_error(503, str(e), _request_id(payload))(scope, receive, send)
            return

        if self._task_group is None:
            self.registry.close(session.id)
            raise RuntimeError("HttpSessionManager.run() is not active")

        transport = StreamableHTTPServerTransport(
            mcp_session_id=session.id,
            is_json_response_enabled=self.json_response,
        )
        self._transports[session.id] = transport
        await self._task_group.start(self._run_session, transport)
        await transport.handle_request(scope, _replay(body, receive), send)

    async def _run_session(
        self,
        transport: StreamableHTTPServerTransport,
        *,
        task_status: TaskStatus[None] = anyio.TASK_STATUS_IGNORED,
    ) -> None:
        session_id = transport.mcp_session_id or ""
        async with transport.connect() as (read_stream, write_stream):
            task_status.started()
            try:
                await self.server.run(
                    read_stream,
                    write_stream,
                    self.server.create_initialization_options(),
                    stateless=False,
                )
            except Exception:
                logger.exception("Session %s crashed", session_id)
            finally:
                self._forget(session_id)
