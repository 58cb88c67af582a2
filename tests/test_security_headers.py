"""Tests for security headers middleware."""

from __future__ import annotations

import pytest
from starlette.responses import Response

from webguard.config.loader import WebguardSettings
from webguard.middleware.pipeline import RequestContext
from webguard.middleware.route_classifier import RouteCategory
from webguard.middleware.security_headers import (
    SecurityHeaders,
    build_header_policies,
    reset_presets_cache,
)

EXPECTED_CSP = (
    "default-src 'self'; "
    "script-src 'self' https://cdn.jsdelivr.net; "
    "style-src 'self' https://cdn.jsdelivr.net; "
    "img-src 'self' data:; "
    "font-src 'self' https://cdn.jsdelivr.net; "
    "connect-src 'self'; "
    "frame-ancestors 'none'; "
    "base-uri 'self'; "
    "form-action 'self'"
)


def _make_context(category: RouteCategory | None) -> RequestContext:
    return RequestContext(route_category=category)


async def _apply(category: RouteCategory | None, settings: WebguardSettings | None = None, **headers) -> Response:
    mw = SecurityHeaders(settings or WebguardSettings())
    response = Response(content="ok", status_code=200, headers=headers or None)
    return await mw.process_response(response, _make_context(category))


# ── Always-on headers ───────────────────────────────────────────────────


class TestBaseHeaders:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("category", list(RouteCategory))
    async def test_base_headers_for_every_category(self, category):
        result = await _apply(category)

        assert result.headers["content-security-policy"] == EXPECTED_CSP
        assert result.headers["x-frame-options"] == "DENY"
        assert result.headers["x-content-type-options"] == "nosniff"
        assert result.headers["x-xss-protection"] == "1; mode=block"

    @pytest.mark.asyncio
    async def test_identifying_headers_stripped(self):
        result = await _apply(RouteCategory.DEFAULT, server="Kestrel", **{"x-powered-by": "ASP.NET"})
        assert "server" not in result.headers
        assert "x-powered-by" not in result.headers

    @pytest.mark.asyncio
    async def test_status_and_body_untouched(self):
        mw = SecurityHeaders(WebguardSettings())
        response = Response(content="created", status_code=201)
        result = await mw.process_response(response, _make_context(RouteCategory.SENSITIVE))
        assert result.status_code == 201
        assert result.body == b"created"

    @pytest.mark.asyncio
    async def test_csp_appended_not_replaced(self):
        result = await _apply(RouteCategory.DEFAULT, **{"content-security-policy": "script-src 'none'"})
        values = result.headers.getlist("content-security-policy")
        assert values == ["script-src 'none'", EXPECTED_CSP]

    @pytest.mark.asyncio
    async def test_security_headers_replace_downstream_values(self):
        result = await _apply(RouteCategory.DEFAULT, **{"x-frame-options": "SAMEORIGIN"})
        assert result.headers.getlist("x-frame-options") == ["DENY"]

    @pytest.mark.asyncio
    async def test_custom_cdn_origin(self):
        settings = WebguardSettings(csp_cdn_origins=["https://cdn.example.com"])
        result = await _apply(RouteCategory.DEFAULT, settings)
        csp = result.headers["content-security-policy"]
        assert "script-src 'self' https://cdn.example.com" in csp
        assert "jsdelivr" not in csp


# ── Cache directives per category ───────────────────────────────────────


class TestCategoryHeaders:
    @pytest.mark.asyncio
    async def test_sensitive(self):
        result = await _apply(RouteCategory.SENSITIVE)
        assert result.headers["cache-control"] == "no-store, no-cache, must-revalidate, max-age=0"
        assert result.headers["pragma"] == "no-cache"
        assert result.headers["expires"] == "0"

    @pytest.mark.asyncio
    async def test_static_asset(self):
        result = await _apply(RouteCategory.STATIC_ASSET)
        assert result.headers["cache-control"] == "public, max-age=31536000, immutable"
        assert "pragma" not in result.headers
        assert "expires" not in result.headers

    @pytest.mark.asyncio
    async def test_static_asset_clears_downstream_pragma(self):
        result = await _apply(RouteCategory.STATIC_ASSET, pragma="no-cache", expires="0")
        assert "pragma" not in result.headers
        assert "expires" not in result.headers

    @pytest.mark.asyncio
    async def test_default(self):
        result = await _apply(RouteCategory.DEFAULT)
        assert result.headers["cache-control"] == "no-cache, no-store, must-revalidate"
        assert result.headers["pragma"] == "no-cache"
        assert result.headers["expires"] == "0"

    @pytest.mark.asyncio
    async def test_unclassified_falls_back_to_default(self):
        result = await _apply(None)
        assert result.headers["cache-control"] == "no-cache, no-store, must-revalidate"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("category", list(RouteCategory))
    async def test_each_header_set_once(self, category):
        result = await _apply(category, **{"cache-control": "private"})
        for name in ("cache-control", "x-frame-options", "x-content-type-options", "content-security-policy"):
            assert len(result.headers.getlist(name)) == 1


# ── HSTS ────────────────────────────────────────────────────────────────


class TestHsts:
    @pytest.mark.asyncio
    async def test_hsts_outside_development(self):
        result = await _apply(RouteCategory.DEFAULT, WebguardSettings(environment="production"))
        assert result.headers["strict-transport-security"] == "max-age=2592000"

    @pytest.mark.asyncio
    async def test_no_hsts_in_development(self):
        result = await _apply(RouteCategory.DEFAULT, WebguardSettings(environment="Development"))
        assert "strict-transport-security" not in result.headers

    @pytest.mark.asyncio
    async def test_hsts_disabled_with_zero_max_age(self):
        result = await _apply(RouteCategory.DEFAULT, WebguardSettings(hsts_max_age=0))
        assert "strict-transport-security" not in result.headers


# ── Policy compilation ──────────────────────────────────────────────────


class TestBuildHeaderPolicies:
    def test_one_policy_per_category(self):
        policies = build_header_policies(WebguardSettings())
        assert set(policies) == set(RouteCategory)

    def test_policies_are_immutable(self):
        policy = build_header_policies(WebguardSettings())[RouteCategory.SENSITIVE]
        with pytest.raises(AttributeError):
            policy.csp = "default-src *"

    def test_deterministic(self):
        first = build_header_policies(WebguardSettings())
        reset_presets_cache()
        second = build_header_policies(WebguardSettings())
        assert first == second

    def test_missing_presets_file_fails_startup(self, monkeypatch, tmp_path):
        import webguard.middleware.security_headers as sh

        monkeypatch.setattr(sh, "_PRESETS_PATH", tmp_path / "missing.yaml")
        with pytest.raises(FileNotFoundError):
            SecurityHeaders(WebguardSettings())

    def test_missing_category_rejected(self, monkeypatch, tmp_path):
        import webguard.middleware.security_headers as sh

        presets = tmp_path / "presets.yaml"
        presets.write_text("base: {}\ncategories:\n  static-asset: {}\n")
        monkeypatch.setattr(sh, "_PRESETS_PATH", presets)
        with pytest.raises(ValueError):
            build_header_policies(WebguardSettings())

    def test_response_errors_propagate(self):
        """Header application has no skip path in the pipeline."""
        assert SecurityHeaders.skippable is False
