"""Shared test fixtures."""

from __future__ import annotations

import pytest
from fastapi import APIRouter
from fastapi.testclient import TestClient
from starlette.requests import Request
from starlette.responses import Response

from webguard.middleware.pipeline import RequestContext


@pytest.fixture(autouse=True)
def _mock_settings(monkeypatch):
    """Provide default settings for all tests."""
    monkeypatch.setenv("WEBGUARD_ENVIRONMENT", "production")
    monkeypatch.setenv("WEBGUARD_LOG_JSON", "false")
    monkeypatch.setenv("WEBGUARD_LOG_LEVEL", "debug")
    monkeypatch.setenv("WEBGUARD_DEMO_PASSWORD", "Demo-Passw0rd!")

    # Reset process-wide state
    import webguard.config.loader as loader
    from webguard.config.cookie_policy import reset_cookie_policies
    from webguard.middleware.security_headers import reset_presets_cache

    loader._settings = None
    reset_cookie_policies()
    reset_presets_cache()
    yield
    loader._settings = None
    reset_cookie_policies()
    reset_presets_cache()


@pytest.fixture
def context() -> RequestContext:
    return RequestContext()


@pytest.fixture
def controller_calls() -> list[str]:
    return []


@pytest.fixture
def records_router(controller_calls) -> APIRouter:
    """Stand-in for the record controllers behind the pipeline."""
    router = APIRouter()

    @router.get("/")
    async def home():
        controller_calls.append("home")
        return {"page": "home"}

    @router.get("/messages/create")
    async def create_message_form(request: Request):
        controller_calls.append("messages.create.form")
        ctx = request.state.webguard_context
        return {"antiforgery_token": ctx.antiforgery_token}

    @router.post("/messages/create")
    async def create_message():
        controller_calls.append("messages.create")
        return {"created": True}

    @router.get("/css/site.css")
    async def site_css():
        controller_calls.append("css")
        return Response(content="body{}", media_type="text/css")

    @router.get("/powered")
    async def powered():
        controller_calls.append("powered")
        return Response(
            content="ok",
            headers={"server": "Kestrel", "x-powered-by": "ASP.NET"},
        )

    @router.get("/legacy-cookie")
    async def legacy_cookie():
        controller_calls.append("legacy-cookie")
        response = Response(content="ok")
        response.set_cookie("prefs", "dark", samesite="lax")
        return response

    @router.get("/boom")
    async def boom():
        controller_calls.append("boom")
        raise RuntimeError("controller failure")

    return router


@pytest.fixture
def client(records_router):
    """Test client for the host app with the stand-in controllers mounted."""
    from webguard.main import create_app

    app = create_app(routers=[records_router])
    with TestClient(app, raise_server_exceptions=False, base_url="https://testserver") as c:
        yield c
