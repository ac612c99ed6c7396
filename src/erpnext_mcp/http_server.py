"""Streamable HTTP transport for the ERPNext MCP server.

Routes:
  GET    /health  -> {"status": "ok", "authenticated": bool}
  POST   /mcp     -> JSON-RPC messages; an ``initialize`` request without a
                     session id opens a new session
  GET    /mcp     -> server-push (SSE) stream of an existing session,
                     resumable with ``Last-Event-ID``
  DELETE /mcp     -> terminate an existing session

Every session gets its own ``StreamableHTTPServerTransport`` and its own
protocol server (see ``app.create_server``) running in the router's task
group.  The ``SessionStore`` decides which requests reach which transport.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from uuid import uuid4

import anyio
import uvicorn
from anyio.abc import TaskGroup, TaskStatus
from mcp.server import Server
from mcp.server.streamable_http import (
    LAST_EVENT_ID_HEADER,
    MCP_SESSION_ID_HEADER,
    StreamableHTTPServerTransport,
)
from mcp.types import INTERNAL_ERROR
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response
from starlette.routing import Route
from starlette.types import Message, Receive, Scope, Send

from erpnext_mcp.app import create_server
from erpnext_mcp.client import ERPNextClient
from erpnext_mcp.event_store import InMemoryEventStore
from erpnext_mcp.sessions import SessionStore
from erpnext_mcp.settings import Settings

logger = logging.getLogger(__name__)

MCP_PATH = "/mcp"
SESSION_HEADER_NAME = "Mcp-Session-Id"

# JSON-RPC implementation-defined server error, used for session routing failures.
BAD_SESSION_CODE = -32000
BAD_SESSION_MESSAGE = "Bad Request: No valid session ID provided"
INVALID_SESSION_TEXT = "Invalid or missing session ID"


def _jsonrpc_error(status_code: int, code: int, message: str) -> JSONResponse:
    return JSONResponse(
        {"jsonrpc": "2.0", "error": {"code": code, "message": message}, "id": None},
        status_code=status_code,
    )


def _is_initialize_request(body: bytes) -> bool:
    try:
        payload = json.loads(body)
    except ValueError:
        return False
    return (
        isinstance(payload, dict)
        and payload.get("jsonrpc") == "2.0"
        and payload.get("method") == "initialize"
        and "id" in payload
    )


def _replay_body(body: bytes, receive: Receive) -> Receive:
    """Return a receive callable that yields the already-read *body* first."""
    replayed = False

    async def replay() -> Message:
        nonlocal replayed
        if not replayed:
            replayed = True
            return {"type": "http.request", "body": body, "more_body": False}
        return await receive()

    return replay


class _TrackedSend:
    """Wrap ``send`` to remember the status of the response, once started."""

    def __init__(self, send: Send) -> None:
        self._send = send
        self.status: int | None = None

    @property
    def started(self) -> bool:
        return self.status is not None

    @property
    def succeeded(self) -> bool:
        return self.status is not None and 200 <= self.status < 300

    async def __call__(self, message: Message) -> None:
        if message["type"] == "http.response.start":
            self.status = message["status"]
        await self._send(message)


class SessionRouter:
    """ASGI endpoint for ``/mcp`` that routes requests by ``Mcp-Session-Id``.

    ``run()`` must be entered (the Starlette lifespan does this) before the
    router serves requests; leaving it closes every session.
    """

    def __init__(
        self,
        server_factory: Callable[[], Server],
        *,
        json_response: bool = False,
        store: SessionStore | None = None,
    ) -> None:
        self._server_factory = server_factory
        self._json_response = json_response
        self.store = store if store is not None else SessionStore()
        self._task_group: TaskGroup | None = None

    @asynccontextmanager
    async def run(self) -> AsyncIterator[None]:
        """Own the task group that session servers run in."""
        async with anyio.create_task_group() as task_group:
            self._task_group = task_group
            try:
                yield
            finally:
                logger.info("Shutting down %d MCP session(s)", len(self.store))
                await self.store.close_all()
                task_group.cancel_scope.cancel()
                self._task_group = None

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        method = scope["method"]
        if method == "POST":
            await self._handle_post(scope, receive, send)
        elif method == "GET":
            await self._handle_get(scope, receive, send)
        elif method == "DELETE":
            await self._handle_delete(scope, receive, send)
        else:
            response = PlainTextResponse("Method Not Allowed", status_code=405)
            await response(scope, receive, send)

    # ── Session lifecycle ───────────────────────────────────────────────────

    def _create_transport(self, session_id: str) -> StreamableHTTPServerTransport:
        return StreamableHTTPServerTransport(
            mcp_session_id=session_id,
            is_json_response_enabled=self._json_response,
            event_store=InMemoryEventStore(),
        )

    async def _start_session(self) -> StreamableHTTPServerTransport:
        if self._task_group is None:
            raise RuntimeError("SessionRouter.run() must be entered before serving")

        session_id = str(uuid4())
        transport = self._create_transport(session_id)
        self.store.add(session_id, transport)
        try:
            await self._task_group.start(self._run_session, transport)
        except BaseException:
            self.store.remove(session_id)
            raise
        return transport

    async def _discard_session(self, transport: StreamableHTTPServerTransport) -> None:
        """Forget a session whose ``initialize`` request was rejected."""
        session_id = transport.mcp_session_id
        logger.debug("Discarding rejected session %s", session_id)
        if session_id is not None:
            self.store.remove(session_id)
        try:
            await transport.terminate()
        except Exception:
            logger.exception("Error closing transport for session %s", session_id)

    async def _run_session(
        self,
        transport: StreamableHTTPServerTransport,
        *,
        task_status: TaskStatus[None] = anyio.TASK_STATUS_IGNORED,
    ) -> None:
        """Serve one session until its transport closes, then forget it."""
        session_id = transport.mcp_session_id
        server = self._server_factory()
        try:
            async with transport.connect() as (read_stream, write_stream):
                task_status.started()
                await server.run(
                    read_stream,
                    write_stream,
                    server.create_initialization_options(),
                )
        except Exception:
            logger.exception("MCP server for session %s stopped with an error", session_id)
        finally:
            if session_id is not None:
                self.store.remove(session_id)

    # ── Handlers ────────────────────────────────────────────────────────────

    async def _handle_post(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive)
        session_id = request.headers.get(MCP_SESSION_ID_HEADER)
        tracked = _TrackedSend(send)

        try:
            if session_id is not None:
                logger.debug("Received MCP request for session: %s", session_id)
                transport = self.store.get(session_id)
                if transport is not None:
                    await transport.handle_request(scope, receive, tracked)
                    return
            else:
                body = await request.body()
                if _is_initialize_request(body):
                    transport = await self._start_session()
                    try:
                        await transport.handle_request(
                            scope, _replay_body(body, receive), tracked
                        )
                    finally:
                        # The client only learns the id from a successful answer.
                        if not tracked.succeeded:
                            await self._discard_session(transport)
                    return
            response: Response = _jsonrpc_error(400, BAD_SESSION_CODE, BAD_SESSION_MESSAGE)
        except Exception:
            logger.exception("Error handling MCP POST request")
            if tracked.started:
                return
            response = _jsonrpc_error(500, INTERNAL_ERROR, "Internal server error")

        await response(scope, receive, send)

    async def _handle_get(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope)
        session_id = request.headers.get(MCP_SESSION_ID_HEADER)
        transport = self.store.get(session_id)
        if transport is None:
            response = PlainTextResponse(INVALID_SESSION_TEXT, status_code=400)
            await response(scope, receive, send)
            return

        last_event_id = request.headers.get(LAST_EVENT_ID_HEADER)
        if last_event_id:
            logger.debug("Client reconnecting with Last-Event-ID: %s", last_event_id)
        else:
            logger.debug("Establishing SSE stream for session %s", session_id)
        await transport.handle_request(scope, receive, send)

    async def _handle_delete(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope)
        session_id = request.headers.get(MCP_SESSION_ID_HEADER)
        transport = self.store.get(session_id)
        if session_id is None or transport is None:
            response = PlainTextResponse(INVALID_SESSION_TEXT, status_code=400)
            await response(scope, receive, send)
            return

        logger.info("Session termination request for session %s", session_id)
        tracked = _TrackedSend(send)
        try:
            await transport.handle_request(scope, receive, tracked)
        except Exception:
            logger.exception("Error handling session termination")
            if not tracked.started:
                response = PlainTextResponse(
                    "Error processing session termination", status_code=500
                )
                await response(scope, receive, send)
        finally:
            if transport.is_terminated:
                self.store.remove(session_id)


def create_app(client: ERPNextClient, *, json_response: bool = False) -> Starlette:
    """Build the Starlette application serving MCP over streamable HTTP."""
    router = SessionRouter(lambda: create_server(client), json_response=json_response)

    async def health(request: Request) -> JSONResponse:
        return JSONResponse({"status": "ok", "authenticated": client.is_authenticated()})

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        async with router.run():
            yield

    app = Starlette(
        routes=[
            Route("/health", health, methods=["GET"]),
            Route(MCP_PATH, endpoint=router, methods=["GET", "POST", "DELETE"]),
        ],
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[SESSION_HEADER_NAME],
    )
    app.state.session_router = router
    return app


async def serve_http(settings: Settings) -> None:
    """Serve the HTTP transport until uvicorn receives a shutdown signal."""
    async with ERPNextClient(settings) as client:
        app = create_app(client)
        config = uvicorn.Config(
            app,
            host=settings.host,
            port=settings.port,
            log_level="debug" if settings.debug else "info",
        )
        logger.info("ERPNext MCP HTTP server listening on port %d", settings.port)
        logger.info("MCP endpoint: http://localhost:%d%s", settings.port, MCP_PATH)
        logger.info("Health check: http://localhost:%d/health", settings.port)
        await uvicorn.Server(config).serve()
        logger.info("Server shutdown complete")
