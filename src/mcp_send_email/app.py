"""HTTP application: routes, admission middleware and the uvicorn runner."""

from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncIterator
from typing import Any

import uvicorn
from mcp.server.lowlevel import Server
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Route
from starlette.types import Receive, Scope, Send

from mcp_send_email.settings import DEFAULT_MAX_BODY_BYTES
from mcp_send_email.sse import SseServerTransport, error_response
from mcp_send_email.transport_security import TransportSecurityMiddleware, TransportSecuritySettings

logger = logging.getLogger(__name__)

SSE_PATH = "/sse"
MESSAGE_PATH = "/message"


class SseEndpoint:
    """ASGI endpoint running one MCP server session per event stream."""

    def __init__(self, server: Server[Any, Any], transport: SseServerTransport):
        self.server = server
        self.transport = transport

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        # GET routes also match HEAD, which must not open a session.
        if scope["method"] != "GET":
            await error_response("Not found", 404)(scope, receive, send)
            return

        try:
            async with self.transport.connect_sse(scope, receive, send) as (read_stream, write_stream):
                await self.server.run(read_stream, write_stream, self.server.create_initialization_options())
        except Exception:
            # The stream response has already started, so there is no status to report.
            logger.exception("SSE session crashed")


async def not_found(request: Request, exc: Exception) -> Response:
    return error_response("Not found", 404)


def create_app(
    server: Server[Any, Any],
    *,
    transport: SseServerTransport | None = None,
    security_settings: TransportSecuritySettings | None = None,
    max_body_bytes: int = DEFAULT_MAX_BODY_BYTES,
    debug: bool = False,
) -> Starlette:
    """Build the Starlette application serving ``server`` over SSE.

    Routes:
        GET  /sse      opens an event stream (one session per stream)
        POST /message  delivers a message to the session named by ``Mcp-Session-Id``

    Every other method/path combination answers 404 with a JSON body.
    """
    sse = transport or SseServerTransport(MESSAGE_PATH, max_body_bytes=max_body_bytes)

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        try:
            yield
        finally:
            logger.info(f"Closing {len(sse.sessions)} open session(s)")
            sse.sessions.close_all()

    exception_handlers: dict[Any, Any] = {
        404: not_found,
        # A known path with the wrong method is reported the same as an unknown path.
        405: not_found,
    }
    app = Starlette(
        debug=debug,
        routes=[
            Route(SSE_PATH, endpoint=SseEndpoint(server, sse), methods=["GET"]),
            Route(MESSAGE_PATH, endpoint=sse.handle_post_message, methods=["POST"]),
        ],
        middleware=[Middleware(TransportSecurityMiddleware, settings=security_settings)],
        exception_handlers=exception_handlers,
        lifespan=lifespan,
    )
    # Trailing-slash variants are unknown paths.
    app.router.redirect_slashes = False
    app.state.sse_transport = sse
    return app


async def run_http(app: Starlette, *, host: str, port: int, log_level: str = "info") -> None:
    """Serve ``app`` with uvicorn until the process is told to stop."""
    logger.info(f"Email sending service MCP Server running on http://{host}:{port}")
    logger.info(f"SSE endpoint: http://{host}:{port}{SSE_PATH}")
    logger.info(f"Message endpoint: http://{host}:{port}{MESSAGE_PATH}")

    config = uvicorn.Config(app, host=host, port=port, log_level=log_level.lower())
    server = uvicorn.Server(config)
    await server.serve()
