"""Startup configuration for the email MCP server."""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from mcp_send_email.exceptions import ConfigurationError
from mcp_send_email.logging import LogLevel

DEFAULT_MAX_BODY_BYTES = 1_000_000
MISSING_API_KEY_MESSAGE = "No API key provided. Please set RESEND_API_KEY environment variable or use --key argument"


class EmailServerSettings(BaseSettings):
    """Settings for the email MCP server.

    All settings can be configured via environment variables; transport
    settings use the ``MCP_`` prefix (e.g. ``MCP_PORT=8080``) while the Resend
    credentials keep their historical names (``RESEND_API_KEY``,
    ``SENDER_EMAIL_ADDRESS``, ``REPLY_TO_EMAIL_ADDRESSES``). Values passed to the
    constructor (the command line) take precedence over the environment.
    """

    model_config = SettingsConfigDict(
        env_prefix="MCP_",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    # Transport settings
    transport: Literal["stdio", "http"] = "stdio"
    host: str = "localhost"
    port: int = Field(default=3000, ge=0, le=65535)
    cors_origin: str | None = None
    """Exact Origin allowed to call the HTTP transport; loopback origins only when unset."""

    max_body_bytes: int = Field(default=DEFAULT_MAX_BODY_BYTES, gt=0)
    """Upper bound on the size of a POSTed protocol message."""

    log_level: LogLevel = "INFO"

    # Resend settings
    resend_api_key: str | None = Field(default=None, validation_alias="RESEND_API_KEY", repr=False)
    sender_email_address: str | None = Field(default=None, validation_alias="SENDER_EMAIL_ADDRESS")
    reply_to_email_addresses: Annotated[list[str], NoDecode] = Field(
        default_factory=list, validation_alias="REPLY_TO_EMAIL_ADDRESSES"
    )

    @field_validator("reply_to_email_addresses", mode="before")
    @classmethod
    def _split_reply_to(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [address.strip() for address in value.split(",") if address.strip()]
        return value

    @field_validator("sender_email_address", "cors_origin", mode="before")
    @classmethod
    def _empty_as_unset(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def api_key(self) -> str:
        """The Resend API key; fails if none was configured."""
        if not self.resend_api_key:
            raise ConfigurationError(MISSING_API_KEY_MESSAGE)
        return self.resend_api_key
