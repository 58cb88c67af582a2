"""HTTPS redirection stage: sends plain-HTTP requests to the https:// URL."""

from __future__ import annotations

import structlog
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response

from webguard.config.loader import WebguardSettings, get_settings
from webguard.middleware.pipeline import Middleware, RequestContext

logger = structlog.get_logger()

_SECURE_SCHEMES = frozenset({"https", "wss"})


class HttpsRedirect(Middleware):
    """Redirect plain ``http`` requests to the same URL over ``https``.

    Paths in ``https_exempt_paths`` (health checks) are served over either scheme.
    """

    def __init__(self, settings: WebguardSettings | None = None) -> None:
        settings = settings or get_settings()
        self._status_code = settings.https_redirect_status
        self._exempt_paths = frozenset(settings.https_exempt_paths)
        self._trust_forwarded_proto = settings.trust_forwarded_proto

    def is_secure(self, request: Request) -> bool:
        if request.url.scheme in _SECURE_SCHEMES:
            return True
        if self._trust_forwarded_proto:
            proto = request.headers.get("x-forwarded-proto", "").split(",")[0].strip().lower()
            return proto == "https"
        return False

    def redirect_url(self, request: Request) -> str:
        url = request.url
        netloc = url.hostname if url.port in (80, 443) else url.netloc
        return str(url.replace(scheme="https", netloc=netloc))

    async def process_request(self, request: Request, context: RequestContext) -> Response | None:
        if request.url.path in self._exempt_paths or self.is_secure(request):
            return None
        target = self.redirect_url(request)
        logger.info("https_redirect", request_id=context.request_id, status=self._status_code)
        return RedirectResponse(target, status_code=self._status_code)
