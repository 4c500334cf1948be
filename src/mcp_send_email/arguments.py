"""Argument models for the ``send-email`` tool.

Whether ``from`` and ``replyTo`` are part of the tool's input schema depends on
the startup configuration: an argument is only asked of the caller when no
default was configured. Each of the four combinations is a separate model,
chosen once when the tool registry is built.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from mcp_send_email.exceptions import ToolError

_ASK_THE_USER = "You MUST ask the user for this parameter. Under no circumstance provide it yourself"


class SendEmailArguments(BaseModel):
    """Arguments when both a default sender and default reply-to addresses are configured."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    to: EmailStr = Field(description="Recipient email address")
    subject: str = Field(min_length=1, description="Email subject line")
    text: str = Field(min_length=1, description="Plain text email content")
    html: str | None = Field(
        default=None,
        description="HTML email content. When provided, the plain text argument MUST be provided as well.",
    )
    cc: list[EmailStr] | None = Field(
        default=None,
        description=f"Optional array of CC email addresses. {_ASK_THE_USER}",
    )
    bcc: list[EmailStr] | None = Field(
        default=None,
        description=f"Optional array of BCC email addresses. {_ASK_THE_USER}",
    )
    scheduled_at: str | None = Field(
        default=None,
        alias="scheduledAt",
        description=(
            "Optional parameter to schedule the email. This uses natural language. Examples would be "
            "'tomorrow at 10am' or 'in 2 hours' or 'next day at 9am PST' or 'Friday at 3pm ET'."
        ),
    )

    def resolve_sender(self, default: str | None) -> str:
        if not default:
            raise ToolError("from argument must be provided.")
        return default

    def resolve_reply_to(self, default: list[str]) -> list[str]:
        if not default:
            raise ToolError("replyTo argument must be provided.")
        return list(default)


class SendEmailArgumentsWithFrom(SendEmailArguments):
    """Arguments when no default sender is configured."""

    sender: EmailStr = Field(alias="from", description=f"Sender email address. {_ASK_THE_USER}")

    def resolve_sender(self, default: str | None) -> str:
        return self.sender


class SendEmailArgumentsWithReplyTo(SendEmailArguments):
    """Arguments when no default reply-to addresses are configured."""

    reply_to: list[EmailStr] = Field(
        alias="replyTo",
        min_length=1,
        description=f"Email addresses for the email readers to reply to. {_ASK_THE_USER}",
    )

    def resolve_reply_to(self, default: list[str]) -> list[str]:
        return list(self.reply_to)


class SendEmailArgumentsWithFromAndReplyTo(SendEmailArgumentsWithFrom, SendEmailArgumentsWithReplyTo):
    """Arguments when neither a default sender nor default reply-to addresses are configured."""


def select_send_email_arguments(*, has_default_sender: bool, has_default_reply_to: bool) -> type[SendEmailArguments]:
    """Pick the argument model matching the configured defaults."""
    if has_default_sender and has_default_reply_to:
        return SendEmailArguments
    if has_default_sender:
        return SendEmailArgumentsWithReplyTo
    if has_default_reply_to:
        return SendEmailArgumentsWithFrom
    return SendEmailArgumentsWithFromAndReplyTo
