"""MCP server wiring: exposes the tool registry through the protocol layer."""

from __future__ import annotations

from typing import Any

from mcp import types
from mcp.server.lowlevel import Server

from mcp_send_email.tools import ToolRegistry

SERVER_NAME = "email-sending-service"
SERVER_VERSION = "1.0.0"


def create_server(registry: ToolRegistry) -> Server[Any, Any]:
    """Create the low-level MCP server dispatching tool calls into ``registry``.

    The same server instance is shared by every transport session; each
    session runs its own ``Server.run`` over its own pair of streams.
    """
    server: Server[Any, Any] = Server(SERVER_NAME, version=SERVER_VERSION)

    @server.list_tools()
    async def handle_list_tools() -> list[types.Tool]:
        return registry.list_tools()

    # Arguments are validated by the registry's pydantic models so that
    # invalid calls come back as tool results rather than protocol errors.
    @server.call_tool(validate_input=False)
    async def handle_call_tool(name: str, arguments: dict[str, Any]) -> types.CallToolResult:
        return await registry.call_tool(name, arguments)

    return server
