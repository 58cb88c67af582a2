"""Anti-forgery token validation middleware (double-submit cookie)."""

from __future__ import annotations

import hmac
import secrets
from urllib.parse import parse_qs

import structlog
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response

from webguard.config.cookie_policy import CookiePolicies, get_cookie_policies
from webguard.middleware.pipeline import Middleware, RequestContext
from webguard.middleware.route_classifier import RouteCategory

logger = structlog.get_logger()

SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "TRACE"})

REJECTION_BODY = "Invalid anti-forgery token"

_FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

# 32 bytes of entropy, URL-safe base64
_TOKEN_BYTES = 32

# Upper bound on a form body we will parse for the token
_MAX_FORM_BYTES = 1024 * 1024


def generate_token() -> str:
    """Generate a cryptographically secure anti-forgery token."""
    return secrets.token_urlsafe(_TOKEN_BYTES)


def tokens_match(expected: str, submitted: str) -> bool:
    if not expected or not submitted:
        return False
    return hmac.compare_digest(expected.encode(), submitted.encode())


class AntiforgeryValidator(Middleware):
    """Require a matching anti-forgery token on state-changing requests.

    - Safe methods pass; a token is issued when the client has none,
      except on static-asset routes
    - POST/PUT/PATCH/DELETE must echo the anti-forgery cookie in the
      configured header or, for urlencoded forms, the configured form field
    - Mismatch or absence short-circuits with 400
    - The token is exposed on ``RequestContext.antiforgery_token`` for views
    """

    def __init__(self, policies: CookiePolicies | None = None) -> None:
        self._policies = policies

    @property
    def policies(self) -> CookiePolicies:
        return self._policies or get_cookie_policies()

    async def process_request(self, request: Request, context: RequestContext) -> Response | None:
        config = self.policies.antiforgery_config
        cookie_token = request.cookies.get(config.cookie_name, "")

        if request.method.upper() not in SAFE_METHODS:
            submitted = await self._submitted_token(request)
            if not tokens_match(cookie_token, submitted):
                logger.warning(
                    "antiforgery_rejected",
                    request_id=context.request_id,
                    method=request.method,
                    has_cookie=bool(cookie_token),
                    has_token=bool(submitted),
                )
                return PlainTextResponse(REJECTION_BODY, status_code=400)

        if cookie_token:
            context.antiforgery_token = cookie_token
        elif context.route_category is not RouteCategory.STATIC_ASSET:
            # No per-client token on publicly cached static responses
            context.antiforgery_token = generate_token()
            context.extra["issue_antiforgery_cookie"] = True
        return None

    async def process_response(self, response: Response, context: RequestContext) -> Response:
        if context.extra.get("issue_antiforgery_cookie") and context.antiforgery_token:
            self.policies.antiforgery.apply(response, context.antiforgery_token)
        return response

    async def _submitted_token(self, request: Request) -> str:
        config = self.policies.antiforgery_config
        token = request.headers.get(config.header_name, "")
        if token:
            return token

        content_type = request.headers.get("content-type", "")
        if not content_type.lower().startswith(_FORM_CONTENT_TYPE):
            return ""
        body = await request.body()
        if len(body) > _MAX_FORM_BYTES:
            return ""
        fields = parse_qs(body.decode("utf-8", errors="replace"))
        values = fields.get(config.form_field_name) or [""]
        return values[0]
