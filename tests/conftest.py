from collections.abc import AsyncGenerator

import anyio
import pytest
import sse_starlette
from anyio.abc import TaskGroup
from packaging import version

from tests.test_helpers import FakeGateway


@pytest.fixture
def anyio_backend():
    return "asyncio"


SSE_STARLETTE_VERSION = version.parse(sse_starlette.__version__)
NEEDS_RESET = SSE_STARLETTE_VERSION < version.parse("3.0.0")


@pytest.fixture(autouse=True)
def reset_sse_app_status():
    """Reset sse-starlette's global AppStatus event before each test.

    Before sse-starlette 3.0 the exit event is a module-level asyncio.Event
    bound to the first event loop that touches it.
    """
    if not NEEDS_RESET:
        yield
        return

    from sse_starlette.sse import AppStatus

    AppStatus.should_exit_event = anyio.Event()  # type: ignore[attr-defined]
    yield
    AppStatus.should_exit_event = anyio.Event()  # type: ignore[attr-defined]


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch):
    """Keep the developer's Resend and MCP_* variables out of the tests."""
    for name in (
        "RESEND_API_KEY",
        "SENDER_EMAIL_ADDRESS",
        "REPLY_TO_EMAIL_ADDRESSES",
        "MCP_TRANSPORT",
        "MCP_HOST",
        "MCP_PORT",
        "MCP_CORS_ORIGIN",
        "MCP_LOG_LEVEL",
        "MCP_MAX_BODY_BYTES",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture()
async def tg() -> AsyncGenerator[TaskGroup, None]:
    async with anyio.create_task_group() as tg:
        try:
            yield tg
        finally:
            tg.cancel_scope.cancel()
