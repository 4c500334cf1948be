"""Tests for origin admission and CORS headers."""

from collections.abc import AsyncGenerator

import httpx
import pytest
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import PlainTextResponse
from starlette.routing import Route

from mcp_send_email.transport_security import (
    TransportSecurityMiddleware,
    TransportSecuritySettings,
    is_loopback_origin,
)


@pytest.mark.parametrize(
    "origin",
    ["http://localhost", "http://localhost:5173", "http://127.0.0.1:9999", "https://127.0.0.5", "http://[::1]:8080"],
)
def test_loopback_origins(origin: str):
    assert is_loopback_origin(origin)


@pytest.mark.parametrize(
    "origin",
    ["http://evil.example", "http://localhost.evil.example", "http://10.0.0.1:3000", "null", "", "http://[::1"],
)
def test_non_loopback_origins(origin: str):
    assert not is_loopback_origin(origin)


def test_default_settings_allow_only_loopback():
    middleware = TransportSecurityMiddleware(PlainTextResponse("unused"))

    assert middleware.validate_origin(None)
    assert middleware.validate_origin("http://127.0.0.1:9999")
    assert not middleware.validate_origin("http://evil.example")
    assert middleware.settings.cors_allow_origin == "http://localhost:*"


def test_configured_origin_is_exact_match():
    middleware = TransportSecurityMiddleware(
        PlainTextResponse("unused"), TransportSecuritySettings(allowed_origin="https://allowed.example")
    )

    assert middleware.validate_origin("https://allowed.example")
    assert not middleware.validate_origin("https://allowed.example:8443")
    assert not middleware.validate_origin("http://127.0.0.1:9999")
    assert not middleware.validate_origin(None)
    assert middleware.settings.cors_allow_origin == "https://allowed.example"


def create_guarded_app(settings: TransportSecuritySettings | None = None) -> tuple[Starlette, list[str]]:
    reached: list[str] = []

    async def endpoint(request: Request) -> PlainTextResponse:
        reached.append(request.method)
        return PlainTextResponse("ok")

    app = Starlette(
        routes=[Route("/ping", endpoint=endpoint, methods=["GET", "POST"])],
        middleware=[Middleware(TransportSecurityMiddleware, settings=settings)],
    )
    return app, reached


@pytest.fixture()
async def make_client() -> AsyncGenerator[object, None]:
    clients: list[httpx.AsyncClient] = []

    def factory(app: Starlette) -> httpx.AsyncClient:
        client = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")
        clients.append(client)
        return client

    yield factory
    for client in clients:
        await client.aclose()


@pytest.mark.anyio
async def test_rejected_origin_never_reaches_app(make_client):
    app, reached = create_guarded_app()

    response = await make_client(app).get("/ping", headers={"Origin": "http://evil.example"})

    assert response.status_code == 403
    assert response.json() == {"error": "Forbidden: Invalid origin"}
    assert "access-control-allow-origin" not in response.headers
    assert reached == []


@pytest.mark.anyio
async def test_loopback_origin_admitted_with_cors_headers(make_client):
    app, reached = create_guarded_app()

    response = await make_client(app).get("/ping", headers={"Origin": "http://127.0.0.1:9999"})

    assert response.status_code == 200
    assert reached == ["GET"]
    assert response.headers["access-control-allow-origin"] == "http://localhost:*"
    assert response.headers["access-control-allow-methods"] == "GET, POST, OPTIONS"
    assert response.headers["access-control-allow-headers"] == "Content-Type, Accept, Mcp-Session-Id"
    assert response.headers["access-control-allow-credentials"] == "true"


@pytest.mark.anyio
async def test_missing_origin_admitted(make_client):
    app, reached = create_guarded_app()

    response = await make_client(app).post("/ping")

    assert response.status_code == 200
    assert reached == ["POST"]


@pytest.mark.anyio
async def test_configured_origin_admitted(make_client):
    app, reached = create_guarded_app(TransportSecuritySettings(allowed_origin="https://allowed.example"))
    client = make_client(app)

    allowed = await client.get("/ping", headers={"Origin": "https://allowed.example"})
    loopback = await client.get("/ping", headers={"Origin": "http://127.0.0.1:9999"})

    assert allowed.status_code == 200
    assert allowed.headers["access-control-allow-origin"] == "https://allowed.example"
    assert loopback.status_code == 403
    assert reached == ["GET"]


@pytest.mark.anyio
async def test_preflight_short_circuits(make_client):
    app, reached = create_guarded_app()

    response = await make_client(app).options("/anything", headers={"Origin": "http://localhost:5173"})

    assert response.status_code == 200
    assert response.content == b""
    assert response.headers["access-control-allow-methods"] == "GET, POST, OPTIONS"
    assert reached == []


@pytest.mark.anyio
async def test_preflight_from_rejected_origin(make_client):
    app, _ = create_guarded_app()

    response = await make_client(app).options("/ping", headers={"Origin": "http://evil.example"})

    assert response.status_code == 403
