"""Common test utilities for the email MCP server tests."""

from __future__ import annotations

import json
from typing import Any

import anyio
from mcp.shared.message import SessionMessage
from starlette.types import ASGIApp, Message, Scope

from mcp_send_email.exceptions import ProviderError
from mcp_send_email.gateway import EmailRequest
from mcp_send_email.sse import SseServerTransport


class FakeGateway:
    """In-memory stand-in for the Resend gateway that records every call."""

    def __init__(
        self,
        *,
        send_result: dict[str, Any] | None = None,
        audiences_result: dict[str, Any] | None = None,
        error: dict[str, Any] | None = None,
    ):
        self.send_result = send_result if send_result is not None else {"id": "49a3999c-0ce1-4ea6-ab68-afcd6dc2e794"}
        self.audiences_result = (
            audiences_result
            if audiences_result is not None
            else {"object": "list", "data": [{"id": "78261eea-8f8b-4381-83c6-79fa7120f1cf", "name": "Registered Users"}]}
        )
        self.error = error
        self.sent: list[EmailRequest] = []
        self.audience_calls = 0

    @property
    def call_count(self) -> int:
        return len(self.sent) + self.audience_calls

    async def send_email(self, request: EmailRequest) -> dict[str, Any]:
        self.sent.append(request)
        if self.error is not None:
            raise ProviderError(self.error)
        return self.send_result

    async def list_audiences(self) -> dict[str, Any]:
        self.audience_calls += 1
        if self.error is not None:
            raise ProviderError(self.error)
        return self.audiences_result


def http_scope(method: str, path: str, headers: list[tuple[bytes, bytes]] | None = None) -> Scope:
    return {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method,
        "scheme": "http",
        "path": path,
        "raw_path": path.encode(),
        "root_path": "",
        "query_string": b"",
        "headers": headers or [],
        "server": ("testserver", 80),
        "client": ("127.0.0.1", 50000),
    }


class SseStreamClient:
    """Plays the ASGI server side of one GET /sse connection.

    The connection stays open until :meth:`disconnect` is called; everything the
    application sends is recorded so tests can read the session id and events.
    """

    def __init__(self) -> None:
        self.status: int | None = None
        self.headers: dict[str, str] = {}
        self.body = b""
        self.session_id: str | None = None
        self.finished = anyio.Event()
        self._disconnected = anyio.Event()
        self._body_changed = anyio.Event()

    async def receive(self) -> Message:
        await self._disconnected.wait()
        return {"type": "http.disconnect"}

    async def send(self, message: Message) -> None:
        if message["type"] == "http.response.start":
            self.status = message["status"]
            self.headers = {key.decode().lower(): value.decode() for key, value in message["headers"]}
            self.session_id = self.headers.get("mcp-session-id")
        elif message["type"] == "http.response.body":
            self.body += message.get("body", b"")
            self._body_changed.set()
            self._body_changed = anyio.Event()

    def disconnect(self) -> None:
        self._disconnected.set()

    async def run_app(self, app: ASGIApp, path: str = "/sse") -> None:
        """Run a full ASGI application for a GET request to ``path``."""
        try:
            await app(http_scope("GET", path), self.receive, self.send)
        finally:
            self.finished.set()

    def events(self) -> list[tuple[str, str]]:
        """Parse the received body into (event, data) pairs."""
        parsed: list[tuple[str, str]] = []
        text = self.body.decode().replace("\r\n", "\n")
        for block in text.split("\n\n"):
            event, data = "message", []
            for line in block.split("\n"):
                if line.startswith("event:"):
                    event = line[len("event:") :].strip()
                elif line.startswith("data:"):
                    data.append(line[len("data:") :].strip())
            if data:
                parsed.append((event, "\n".join(data)))
        return parsed

    async def wait_for(self, predicate: Any) -> tuple[str, str]:
        """Wait until an event matching ``predicate(event, data)`` arrives."""
        while True:
            for event, data in self.events():
                if predicate(event, data):
                    return event, data
            await self._body_changed.wait()

    async def wait_for_endpoint(self) -> str:
        _, data = await self.wait_for(lambda event, _: event == "endpoint")
        return data

    async def wait_for_response(self, request_id: int) -> dict[str, Any]:
        def matches(event: str, data: str) -> bool:
            return event == "message" and json.loads(data).get("id") == request_id

        _, data = await self.wait_for(matches)
        return json.loads(data)


class RecordingSession:
    """Opens a session on a transport and records what is delivered to it."""

    def __init__(self, transport: SseServerTransport):
        self.transport = transport
        self.client = SseStreamClient()
        self.messages: list[SessionMessage | Exception] = []
        self.ready = anyio.Event()
        self.closed = anyio.Event()

    async def run(self) -> None:
        try:
            async with self.transport.connect_sse(http_scope("GET", "/sse"), self.client.receive, self.client.send) as (
                read_stream,
                _write_stream,
            ):
                self.ready.set()
                async for message in read_stream:
                    self.messages.append(message)
        finally:
            self.closed.set()

    @property
    def session_id(self) -> str:
        assert self.client.session_id is not None
        return self.client.session_id

    async def wait_for_messages(self, count: int) -> None:
        with anyio.fail_after(3):
            while len(self.messages) < count:
                await anyio.sleep(0.01)
