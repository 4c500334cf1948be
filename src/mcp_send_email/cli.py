"""Command line entry point.

Usage:
    mcp-send-email --key=re_xxx                     # stdio transport
    mcp-send-email --transport=http --port=3000     # SSE over HTTP
"""

from __future__ import annotations

from typing import Any

import anyio
import click
import pydantic
from mcp.server.stdio import stdio_server

from mcp_send_email.app import create_app, run_http
from mcp_send_email.exceptions import ConfigurationError
from mcp_send_email.gateway import EmailGateway, ResendGateway
from mcp_send_email.logging import configure_logging, get_logger
from mcp_send_email.server import create_server
from mcp_send_email.settings import MISSING_API_KEY_MESSAGE, EmailServerSettings
from mcp_send_email.tools import ToolRegistry
from mcp_send_email.transport_security import TransportSecuritySettings

logger = get_logger(__name__)


def build_registry(settings: EmailServerSettings, gateway: EmailGateway) -> ToolRegistry:
    return ToolRegistry(
        gateway,
        sender_email_address=settings.sender_email_address,
        reply_to_email_addresses=settings.reply_to_email_addresses,
    )


async def serve_stdio(settings: EmailServerSettings) -> None:
    """Run a single session over stdin/stdout until stdin closes."""
    async with ResendGateway(settings.api_key) as gateway:
        server = create_server(build_registry(settings, gateway))
        logger.info("Email sending service MCP Server running on stdio")
        async with stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())


async def serve_http(settings: EmailServerSettings) -> None:
    """Serve SSE sessions over HTTP until the process is stopped."""
    async with ResendGateway(settings.api_key) as gateway:
        server = create_server(build_registry(settings, gateway))
        app = create_app(
            server,
            security_settings=TransportSecuritySettings(allowed_origin=settings.cors_origin),
            max_body_bytes=settings.max_body_bytes,
        )
        await run_http(app, host=settings.host, port=settings.port, log_level=settings.log_level)


def load_settings(**overrides: Any) -> EmailServerSettings:
    """Build settings from the environment, with non-empty ``overrides`` taking precedence.

    Raises:
        ConfigurationError: a setting is invalid or the API key is missing.
    """
    values = {name: value for name, value in overrides.items() if value not in (None, ())}
    if "reply_to_email_addresses" in values:
        values["reply_to_email_addresses"] = list(values["reply_to_email_addresses"])
    try:
        settings = EmailServerSettings(**values)
    except pydantic.ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e

    # Fail before any transport starts.
    if not settings.resend_api_key:
        raise ConfigurationError(MISSING_API_KEY_MESSAGE)
    return settings


@click.command()
@click.option(
    "--transport",
    type=click.Choice(["stdio", "http"]),
    default=None,
    help="Transport type (default: stdio)",
)
@click.option("--host", default=None, help="Host to bind the HTTP transport to (default: localhost)")
@click.option("--port", type=int, default=None, help="Port to listen on for HTTP (default: 3000)")
@click.option("--cors-origin", default=None, help="Origin allowed to call the HTTP transport (default: loopback only)")
@click.option("--key", default=None, help="Resend API key (default: $RESEND_API_KEY)")
@click.option("--sender", default=None, help="Default sender email address (default: $SENDER_EMAIL_ADDRESS)")
@click.option(
    "--reply-to",
    multiple=True,
    help="Default reply-to email address; may be repeated (default: $REPLY_TO_EMAIL_ADDRESSES)",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=None,
    help="Log level (default: INFO)",
)
def main(
    transport: str | None,
    host: str | None,
    port: int | None,
    cors_origin: str | None,
    key: str | None,
    sender: str | None,
    reply_to: tuple[str, ...],
    log_level: str | None,
) -> int:
    try:
        settings = load_settings(
            transport=transport,
            host=host,
            port=port,
            cors_origin=cors_origin,
            resend_api_key=key,
            sender_email_address=sender,
            reply_to_email_addresses=reply_to,
            log_level=log_level.upper() if log_level else None,
        )
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e

    configure_logging(settings.log_level)

    if settings.transport == "http":
        anyio.run(serve_http, settings)
    else:
        anyio.run(serve_stdio, settings)
    return 0
