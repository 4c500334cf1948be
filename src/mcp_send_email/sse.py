"""SSE Server Transport Module

This module implements the streaming HTTP transport. Each client opens a
long-lived Server-Sent Events stream, which creates a session, and then POSTs
JSON-RPC messages that are routed to that session by the ``Mcp-Session-Id``
header.

Example usage:
```
    sse = SseServerTransport("/message")

    class SseEndpoint:
        async def __call__(self, scope, receive, send):
            async with sse.connect_sse(scope, receive, send) as streams:
                await app.run(streams[0], streams[1], app.create_initialization_options())

    routes = [
        Route("/sse", endpoint=SseEndpoint(), methods=["GET"]),
        Route("/message", endpoint=sse.handle_post_message, methods=["POST"]),
    ]
```

The first event of every stream is an ``endpoint`` event whose data is the URI
to POST messages to (``/message?sessionId=<id>``); the same id is returned in
the ``Mcp-Session-Id`` response header. Responses and notifications from the
server follow as ``message`` events.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any
from urllib.parse import quote

import anyio
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from mcp import types
from mcp.shared.message import SessionMessage
from pydantic import ValidationError
from sse_starlette import EventSourceResponse
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import Receive, Scope, Send

from mcp_send_email.http_body import BodyTooLargeError, read_request_body
from mcp_send_email.sessions import SessionRegistry
from mcp_send_email.settings import DEFAULT_MAX_BODY_BYTES

logger = logging.getLogger(__name__)

MCP_SESSION_ID_HEADER = "mcp-session-id"


def error_response(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


class SseServerTransport:
    """SSE server transport with a per-connection session registry.

    Provides two ASGI-facing entry points:
    1. connect_sse() opens the event stream for a new session and yields the
       (read, write) stream pair to run an MCP server over.
    2. handle_post_message() delivers a POSTed message to its session.
    """

    def __init__(
        self,
        endpoint: str,
        sessions: SessionRegistry | None = None,
        *,
        max_body_bytes: int = DEFAULT_MAX_BODY_BYTES,
    ) -> None:
        """
        Creates a new SSE server transport, which will direct the client to POST
        messages to the relative path given.

        Args:
            endpoint: A relative path where messages should be posted
                    (e.g., "/message").
            sessions: Registry of open sessions; a fresh one when omitted.
            max_body_bytes: Largest POST body accepted.
        """
        if "://" in endpoint or endpoint.startswith("//") or "?" in endpoint or "#" in endpoint:
            raise ValueError(f"Given endpoint: {endpoint} is not a relative path (e.g., '/message')")
        if not endpoint.startswith("/"):
            endpoint = "/" + endpoint

        self._endpoint = endpoint
        self.sessions = sessions if sessions is not None else SessionRegistry()
        self.max_body_bytes = max_body_bytes
        logger.debug(f"SseServerTransport initialized with endpoint: {endpoint}")

    def _endpoint_uri(self, scope: Scope, session_id: str) -> str:
        root_path = scope.get("root_path", "")
        return f"{root_path.rstrip('/')}{self._endpoint}?sessionId={quote(session_id)}"

    @asynccontextmanager
    async def connect_sse(
        self, scope: Scope, receive: Receive, send: Send
    ) -> AsyncIterator[
        tuple[MemoryObjectReceiveStream[SessionMessage | Exception], MemoryObjectSendStream[SessionMessage]]
    ]:
        if scope["type"] != "http":
            logger.error("connect_sse received non-HTTP request")
            raise ValueError("connect_sse can only handle HTTP requests")

        read_stream: MemoryObjectReceiveStream[SessionMessage | Exception]
        read_stream_writer: MemoryObjectSendStream[SessionMessage | Exception]

        write_stream: MemoryObjectSendStream[SessionMessage]
        write_stream_reader: MemoryObjectReceiveStream[SessionMessage]

        read_stream_writer, read_stream = anyio.create_memory_object_stream(0)
        write_stream, write_stream_reader = anyio.create_memory_object_stream(0)

        session = self.sessions.create()
        self.sessions.open(session, read_stream_writer)
        logger.info(f"New SSE connection established: {session.id}")

        sse_stream_writer, sse_stream_reader = anyio.create_memory_object_stream[dict[str, Any]](0)

        async def sse_writer():
            async with sse_stream_writer, write_stream_reader:
                await sse_stream_writer.send({"event": "endpoint", "data": self._endpoint_uri(scope, session.id)})
                async for session_message in write_stream_reader:
                    await sse_stream_writer.send(
                        {
                            "event": "message",
                            "data": session_message.message.model_dump_json(by_alias=True, exclude_none=True),
                        }
                    )

        async def response_wrapper(scope: Scope, receive: Receive, send: Send):
            """Streams events until the client goes away, then tears the session down."""
            try:
                await EventSourceResponse(
                    content=sse_stream_reader,
                    data_sender_callable=sse_writer,
                    headers={MCP_SESSION_ID_HEADER: session.id},
                )(scope, receive, send)
            finally:
                self.sessions.close(session.id)
                write_stream_reader.close()
                logger.info(f"SSE connection closed: {session.id}")

        async with anyio.create_task_group() as tg:
            tg.start_soon(response_wrapper, scope, receive, send)
            try:
                yield (read_stream, write_stream)
            finally:
                self.sessions.close(session.id)
                tg.cancel_scope.cancel()

    async def handle_post_message(self, request: Request) -> Response:
        """Deliver one POSTed JSON-RPC message to the session named in its header."""
        try:
            return await self._handle_post_message(request)
        except Exception:
            logger.exception("Error handling POST message")
            return error_response("Internal server error", 500)

    async def _handle_post_message(self, request: Request) -> Response:
        session_id = request.headers.get(MCP_SESSION_ID_HEADER)
        if not session_id:
            logger.warning("Received request without session_id")
            return error_response("Missing Mcp-Session-Id header", 400)

        try:
            body = await read_request_body(request, max_body_bytes=self.max_body_bytes)
        except BodyTooLargeError as err:
            logger.warning(f"Rejected message for session {session_id}: {err}")
            return error_response("Request body too large", 413)

        # Looked up only after the body is in: a stream that closed while the
        # body was being read must not receive the message.
        session = self.sessions.get(session_id)
        if session is None or session.writer is None:
            logger.warning(f"Could not find session for ID: {session_id}")
            return error_response("Session not found", 404)

        try:
            payload = json.loads(body)
        except ValueError:
            return error_response("Invalid JSON", 400)

        try:
            message = types.JSONRPCMessage.model_validate(payload)
        except ValidationError as err:
            logger.warning(f"Failed to parse message for session {session_id}: {err}")
            return error_response("Invalid JSON-RPC message", 400)

        logger.debug(f"Sending session message to writer: {session_id}")
        try:
            await session.writer.send(SessionMessage(message))
        except (anyio.ClosedResourceError, anyio.BrokenResourceError):
            logger.warning(f"Session {session_id} closed while delivering a message")
            return error_response("Session not found", 404)

        return Response("Accepted", status_code=202)
