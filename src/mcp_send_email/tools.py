"""Tool registry: declares the callable tools and wraps their results."""

from __future__ import annotations as _annotations

import json
from collections.abc import Awaitable, Callable
from typing import Any

import pydantic
from mcp import types
from pydantic import BaseModel, ConfigDict, Field

from mcp_send_email.arguments import SendEmailArguments, select_send_email_arguments
from mcp_send_email.exceptions import ProviderError, ToolError
from mcp_send_email.gateway import EmailGateway, EmailRequest
from mcp_send_email.logging import get_logger

logger = get_logger(__name__)

SEND_EMAIL_DESCRIPTION = "Send an email using Resend"
LIST_AUDIENCES_DESCRIPTION = (
    "List all audiences from Resend. This tool is useful for getting the audience ID to help the user find "
    "the audience they want to use for other tools. If you need an audience ID, you MUST use this tool to get "
    "all available audiences and then ask the user to select the audience they want to use."
)


class NoArguments(BaseModel):
    """Arguments of a tool that takes none."""


class Tool(BaseModel):
    """Internal tool registration info."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    fn: Callable[[Any], Awaitable[str]] = Field(exclude=True)
    name: str = Field(description="Name of the tool")
    description: str = Field(description="Description of what the tool does")
    arguments_model: type[BaseModel] = Field(exclude=True)

    @property
    def parameters(self) -> dict[str, Any]:
        """JSON schema for the tool's arguments."""
        schema = self.arguments_model.model_json_schema(by_alias=True)
        # Model docstrings are not part of the tool description.
        schema.pop("description", None)
        return schema

    def to_mcp_tool(self) -> types.Tool:
        return types.Tool(name=self.name, description=self.description, inputSchema=self.parameters)

    async def run(self, arguments: dict[str, Any]) -> str:
        """Validate the arguments and run the tool.

        Raises:
            ToolError: the arguments are invalid or the handler failed.
        """
        try:
            parsed = self.arguments_model.model_validate(arguments)
        except pydantic.ValidationError as e:
            raise ToolError(f"Invalid arguments for tool {self.name}: {e}") from e
        return await self.fn(parsed)


class ToolRegistry:
    """Registry of the email tools.

    The ``send-email`` argument schema is fixed at construction time from the
    configured defaults; see :func:`~mcp_send_email.arguments.select_send_email_arguments`.
    """

    def __init__(
        self,
        gateway: EmailGateway,
        *,
        sender_email_address: str | None = None,
        reply_to_email_addresses: list[str] | None = None,
    ):
        self.gateway = gateway
        self.sender_email_address = sender_email_address
        self.reply_to_email_addresses = list(reply_to_email_addresses or [])

        send_email_arguments = select_send_email_arguments(
            has_default_sender=bool(self.sender_email_address),
            has_default_reply_to=bool(self.reply_to_email_addresses),
        )
        self._tools: dict[str, Tool] = {}
        self.add_tool(
            Tool(
                fn=self._send_email,
                name="send-email",
                description=SEND_EMAIL_DESCRIPTION,
                arguments_model=send_email_arguments,
            )
        )
        self.add_tool(
            Tool(
                fn=self._list_audiences,
                name="list-audiences",
                description=LIST_AUDIENCES_DESCRIPTION,
                arguments_model=NoArguments,
            )
        )

    def add_tool(self, tool: Tool) -> Tool:
        if tool.name in self._tools:
            raise ValueError(f"Tool already exists: {tool.name}")
        self._tools[tool.name] = tool
        return tool

    def get_tool(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def list_tools(self) -> list[types.Tool]:
        return [tool.to_mcp_tool() for tool in self._tools.values()]

    async def call_tool(self, name: str, arguments: dict[str, Any] | None) -> types.CallToolResult:
        """Run a tool and wrap the outcome into a tool result.

        Failures (unknown tool, invalid arguments, provider errors) become
        results with ``isError`` set so the caller sees the message inline.
        """
        tool = self.get_tool(name)
        if tool is None:
            return _error_result(f"Unknown tool: {name}")

        try:
            text = await tool.run(arguments or {})
        except ToolError as e:
            logger.warning(f"Tool {name} failed: {e}")
            return _error_result(str(e))
        except Exception as e:
            logger.exception(f"Error executing tool {name}")
            return _error_result(f"Error executing tool {name}: {e}")

        return types.CallToolResult(content=[types.TextContent(type="text", text=text)])

    async def _send_email(self, arguments: SendEmailArguments) -> str:
        request = EmailRequest(
            sender=arguments.resolve_sender(self.sender_email_address),
            to=arguments.to,
            subject=arguments.subject,
            text=arguments.text,
            reply_to=arguments.resolve_reply_to(self.reply_to_email_addresses),
            html=arguments.html or None,
            scheduled_at=arguments.scheduled_at or None,
            cc=arguments.cc or None,
            bcc=arguments.bcc or None,
        )
        logger.debug(f"Sending email with from: {request.sender}")
        logger.debug(f"Email request: {json.dumps(request.to_payload())}")

        try:
            data = await self.gateway.send_email(request)
        except ProviderError as e:
            raise ToolError(f"Email failed to send: {e.payload_json}") from e
        return f"Email sent successfully! {json.dumps(data)}"

    async def _list_audiences(self, arguments: NoArguments) -> str:
        logger.debug("Listing audiences")
        try:
            data = await self.gateway.list_audiences()
        except ProviderError as e:
            raise ToolError(f"Failed to list audiences: {e.payload_json}") from e
        return f"Audiences found: {json.dumps(data)}"


def _error_result(message: str) -> types.CallToolResult:
    return types.CallToolResult(content=[types.TextContent(type="text", text=message)], isError=True)
