"""Route classifier: maps a request path to its security category."""

from __future__ import annotations

import enum
from collections.abc import Sequence

from starlette.requests import Request
from starlette.responses import Response

from webguard.config.loader import WebguardSettings, get_settings
from webguard.middleware.pipeline import Middleware, RequestContext


class RouteCategory(str, enum.Enum):
    SENSITIVE = "sensitive-dynamic"
    STATIC_ASSET = "static-asset"
    DEFAULT = "default-dynamic"


def classify_route(
    path: str,
    sensitive_prefixes: Sequence[str],
    sensitive_fragments: Sequence[str],
    static_prefixes: Sequence[str],
) -> RouteCategory:
    """Classify a path. First match wins: sensitive, then static, then default.

    Pure function of the lowercased path; nothing is cached.
    """
    path = (path or "").lower()

    if path.startswith(tuple(p.lower() for p in sensitive_prefixes)):
        return RouteCategory.SENSITIVE
    if any(fragment.lower() in path for fragment in sensitive_fragments):
        return RouteCategory.SENSITIVE
    if path.startswith(tuple(p.lower() for p in static_prefixes)):
        return RouteCategory.STATIC_ASSET
    return RouteCategory.DEFAULT


class RouteClassifier(Middleware):
    """Record the route category on the context for the response phase."""

    def __init__(self, settings: WebguardSettings | None = None) -> None:
        settings = settings or get_settings()
        self._sensitive_prefixes = tuple(settings.sensitive_prefixes)
        self._sensitive_fragments = tuple(settings.sensitive_fragments)
        self._static_prefixes = tuple(settings.static_prefixes)

    def classify(self, path: str) -> RouteCategory:
        return classify_route(
            path,
            self._sensitive_prefixes,
            self._sensitive_fragments,
            self._static_prefixes,
        )

    async def process_request(self, request: Request, context: RequestContext) -> Response | None:
        context.route_category = self.classify(request.url.path)
        return None
