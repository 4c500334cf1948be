"""Custom exceptions for the email MCP server."""

from __future__ import annotations

import json
from typing import Any


class EmailServerError(Exception):
    """Base error for the email MCP server."""


class ConfigurationError(EmailServerError):
    """Invalid or missing startup configuration."""


class ToolError(EmailServerError):
    """Error in tool operations."""


class ProviderError(EmailServerError):
    """The email provider reported a failure.

    The provider's error payload is kept verbatim so it can be relayed to the
    caller inside the tool result.
    """

    payload: dict[str, Any]

    def __init__(self, payload: dict[str, Any]):
        self.payload = payload
        super().__init__(self.payload_json)

    @property
    def payload_json(self) -> str:
        return json.dumps(self.payload)
