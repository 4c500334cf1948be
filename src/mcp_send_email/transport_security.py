"""Origin validation and CORS headers for the HTTP transport.

Browsers attach an ``Origin`` header to cross-origin requests; checking it is
what keeps a web page the user happens to visit from driving a server bound to
localhost (DNS rebinding).
"""

from __future__ import annotations

import ipaddress
import logging
from urllib.parse import urlsplit

from pydantic import BaseModel
from starlette.datastructures import Headers, MutableHeaders
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)

LOOPBACK_ORIGIN_PATTERN = "http://localhost:*"
ALLOWED_METHODS = "GET, POST, OPTIONS"
ALLOWED_HEADERS = "Content-Type, Accept, Mcp-Session-Id"


class TransportSecuritySettings(BaseModel):
    """Settings for HTTP transport admission."""

    allowed_origin: str | None = None
    """Exact Origin header value to accept.

    When unset, requests without an Origin header are accepted (non-browser
    callers) and requests with one are accepted only if it names a loopback host.
    """

    @property
    def cors_allow_origin(self) -> str:
        return self.allowed_origin or LOOPBACK_ORIGIN_PATTERN


def is_loopback_origin(origin: str) -> bool:
    """Whether ``origin`` (e.g. ``http://127.0.0.1:9999``) names a loopback host."""
    try:
        hostname = urlsplit(origin).hostname
    except ValueError:
        return False
    if not hostname:
        return False
    if hostname == "localhost":
        return True
    try:
        return ipaddress.ip_address(hostname).is_loopback
    except ValueError:
        return False


class TransportSecurityMiddleware:
    """ASGI middleware that admits requests by Origin and decorates responses with CORS headers.

    Rejected requests get a 403 before the wrapped application sees them.
    Admitted ``OPTIONS`` requests are answered here as CORS preflights.
    Implemented as a pure ASGI middleware so streaming responses pass through
    untouched.
    """

    def __init__(self, app: ASGIApp, settings: TransportSecuritySettings | None = None):
        self.app = app
        self.settings = settings or TransportSecuritySettings()

    def validate_origin(self, origin: str | None) -> bool:
        if self.settings.allowed_origin:
            return origin == self.settings.allowed_origin

        # Origin is absent for same-origin and non-browser requests
        if not origin:
            return True
        return is_loopback_origin(origin)

    def apply_cors_headers(self, headers: MutableHeaders) -> None:
        headers["Access-Control-Allow-Origin"] = self.settings.cors_allow_origin
        headers["Access-Control-Allow-Methods"] = ALLOWED_METHODS
        headers["Access-Control-Allow-Headers"] = ALLOWED_HEADERS
        headers["Access-Control-Allow-Credentials"] = "true"

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        origin = Headers(scope=scope).get("origin")
        if not self.validate_origin(origin):
            logger.warning(f"Invalid Origin header: {origin}")
            response = JSONResponse({"error": "Forbidden: Invalid origin"}, status_code=403)
            await response(scope, receive, send)
            return

        if scope["method"] == "OPTIONS":
            response = Response(status_code=200)
            self.apply_cors_headers(response.headers)
            await response(scope, receive, send)
            return

        async def send_with_cors(message: Message) -> None:
            if message["type"] == "http.response.start":
                self.apply_cors_headers(MutableHeaders(scope=message))
            await send(message)

        await self.app(scope, receive, send_with_cors)
