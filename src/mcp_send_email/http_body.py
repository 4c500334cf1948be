from __future__ import annotations

from starlette.requests import Request

from mcp_send_email.exceptions import EmailServerError


class BodyTooLargeError(EmailServerError):
    def __init__(self, max_body_bytes: int):
        self.max_body_bytes = max_body_bytes
        super().__init__(f"Request body exceeds max_body_bytes={max_body_bytes}")


async def read_request_body(request: Request, *, max_body_bytes: int) -> bytes:
    """Read a POSTed message body, refusing to buffer more than ``max_body_bytes``.

    A declared Content-Length over the limit is rejected before reading; a body
    that grows past the limit while streaming is rejected as soon as it does.
    """
    content_length = request.headers.get("content-length")
    if content_length is not None and content_length.isdigit() and int(content_length) > max_body_bytes:
        raise BodyTooLargeError(max_body_bytes)

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > max_body_bytes:
            raise BodyTooLargeError(max_body_bytes)
    return bytes(body)
