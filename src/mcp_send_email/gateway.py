"""Gateway to the Resend email API.

The gateway is the only component that talks to the provider. Every failure,
whether reported by the API or raised by the HTTP exchange itself, surfaces as
a :class:`~mcp_send_email.exceptions.ProviderError` carrying a JSON payload in
the provider's error shape (``statusCode``, ``message``, ``name``).
"""

from __future__ import annotations

from types import TracebackType
from typing import Any, Protocol

import httpx
from pydantic import BaseModel, ConfigDict, Field

from mcp_send_email._httpx_utils import create_resend_http_client
from mcp_send_email.exceptions import ProviderError
from mcp_send_email.logging import get_logger

logger = get_logger(__name__)


class EmailRequest(BaseModel):
    """An outgoing email, serialized with the provider's field names."""

    model_config = ConfigDict(frozen=True)

    sender: str = Field(serialization_alias="from")
    to: str
    subject: str
    text: str
    reply_to: list[str] = Field(default_factory=list)
    html: str | None = None
    scheduled_at: str | None = None
    cc: list[str] | None = None
    bcc: list[str] | None = None

    def to_payload(self) -> dict[str, Any]:
        payload = self.model_dump(by_alias=True, exclude_none=True)
        if not self.reply_to:
            payload.pop("reply_to")
        return payload


class EmailGateway(Protocol):
    """What the tool handlers need from an email provider."""

    async def send_email(self, request: EmailRequest) -> dict[str, Any]: ...

    async def list_audiences(self) -> dict[str, Any]: ...


class ResendGateway:
    """Async adapter over the Resend REST API."""

    def __init__(self, api_key: str, *, client: httpx.AsyncClient | None = None):
        self._client = client or create_resend_http_client(api_key)

    async def __aenter__(self) -> ResendGateway:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def send_email(self, request: EmailRequest) -> dict[str, Any]:
        """Send an email; returns the provider's confirmation (e.g. ``{"id": ...}``)."""
        return await self._request("POST", "/emails", json=request.to_payload())

    async def list_audiences(self) -> dict[str, Any]:
        """List the audiences of the account."""
        return await self._request("GET", "/audiences")

    async def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning(f"Request to Resend failed: {method} {url}: {exc!r}")
            raise ProviderError(
                {"statusCode": None, "message": f"Unable to fetch data. {exc}", "name": "application_error"}
            ) from exc

        payload = _decode_body(response)
        if response.is_error:
            if not isinstance(payload, dict) or "message" not in payload:
                payload = {
                    "statusCode": response.status_code,
                    "message": response.text or response.reason_phrase,
                    "name": "application_error",
                }
            logger.warning(f"Resend rejected {method} {url} with status {response.status_code}")
            raise ProviderError(payload)

        if not isinstance(payload, dict):
            raise ProviderError(
                {
                    "statusCode": response.status_code,
                    "message": "Unexpected response body from Resend",
                    "name": "application_error",
                }
            )
        return payload


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return {}
    try:
        return response.json()
    except ValueError:
        return None
