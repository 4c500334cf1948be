"""Utilities for creating the httpx AsyncClient used to reach Resend."""

from typing import Any

import httpx

__all__ = ["RESEND_API_BASE_URL", "create_resend_http_client"]

RESEND_API_BASE_URL = "https://api.resend.com"
USER_AGENT = "mcp-send-email/1.0.0"


def create_resend_http_client(api_key: str, **kwargs: Any) -> httpx.AsyncClient:
    """Create an httpx AsyncClient preconfigured for the Resend API.

    Defaults:
    - base_url pointing at the Resend API
    - bearer authentication with ``api_key``
    - a 30 second timeout

    Any keyword argument accepted by httpx.AsyncClient overrides these defaults
    (tests pass ``transport=httpx.MockTransport(...)``).

    Note:
        The returned AsyncClient must be closed (``aclose`` or ``async with``)
        to release its connections.
    """
    headers = {
        "Authorization": f"Bearer {api_key}",
        "User-Agent": USER_AGENT,
        "Content-Type": "application/json",
    }
    headers.update(kwargs.pop("headers", None) or {})

    default_kwargs: dict[str, Any] = {
        "base_url": RESEND_API_BASE_URL,
        "timeout": httpx.Timeout(30.0),
        "follow_redirects": True,
    }
    default_kwargs.update(kwargs)
    return httpx.AsyncClient(headers=headers, **default_kwargs)
