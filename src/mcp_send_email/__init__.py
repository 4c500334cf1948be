"""MCP server for sending email and listing audiences through Resend."""

from .gateway import EmailGateway, EmailRequest, ResendGateway
from .server import create_server
from .settings import EmailServerSettings
from .tools import ToolRegistry

__all__ = [
    "EmailGateway",
    "EmailRequest",
    "EmailServerSettings",
    "ResendGateway",
    "ToolRegistry",
    "create_server",
]
