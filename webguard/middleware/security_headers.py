"""Security headers injection middleware."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import structlog
import yaml
from starlette.requests import Request
from starlette.responses import Response

from webguard.config.loader import WebguardSettings, get_settings
from webguard.middleware.csp_builder import add_sources, build_csp, parse_csp
from webguard.middleware.pipeline import Middleware, RequestContext
from webguard.middleware.route_classifier import RouteCategory

logger = structlog.get_logger()

_PRESETS_PATH = Path(__file__).parent.parent / "config" / "header_policies.yaml"

CSP_HEADER = "content-security-policy"

# Cache loaded presets
_presets: dict | None = None


def _load_presets() -> dict:
    """Load header presets from YAML, caching after first load.

    A missing presets file is a deployment error and fails startup.
    """
    global _presets
    if _presets is not None:
        return _presets
    if not _PRESETS_PATH.exists():
        logger.error("header_presets_not_found", path=str(_PRESETS_PATH))
        raise FileNotFoundError(str(_PRESETS_PATH))
    with open(_PRESETS_PATH) as f:
        _presets = yaml.safe_load(f) or {}
    return _presets


def reset_presets_cache() -> None:
    """Reset the presets cache (for testing)."""
    global _presets
    _presets = None


@dataclass(frozen=True)
class HeaderPolicy:
    """The fixed header set for one route category."""

    category: RouteCategory
    csp: str
    headers: tuple[tuple[str, str], ...]
    strip: tuple[str, ...]

    def apply(self, response: Response) -> Response:
        """Decorate the response in place. Never touches status or body."""
        for name in self.strip:
            if name in response.headers:
                del response.headers[name]
        response.headers.append(CSP_HEADER, self.csp)
        for name, value in self.headers:
            response.headers[name] = value
        return response


def build_header_policies(settings: WebguardSettings) -> dict[RouteCategory, HeaderPolicy]:
    """Compile the presets into one immutable ``HeaderPolicy`` per category."""
    presets = _load_presets()
    base = {k.lower(): str(v) for k, v in (presets.get("base") or {}).items()}
    categories = presets.get("categories") or {}

    csp = build_csp(add_sources(parse_csp(base.pop(CSP_HEADER, "")), settings.csp_cdn_origins))

    if not settings.is_development and settings.hsts_max_age > 0:
        base["strict-transport-security"] = f"max-age={settings.hsts_max_age}"

    # Cache headers set by any category are cleared where a category omits them
    cache_headers = {
        name.lower() for headers in categories.values() for name in (headers or {})
    }

    policies: dict[RouteCategory, HeaderPolicy] = {}
    for category in RouteCategory:
        if category.value not in categories:
            raise ValueError(f"No header preset for route category {category.value!r}")
        own = {k.lower(): str(v) for k, v in (categories[category.value] or {}).items()}
        strip = [h.lower() for h in presets.get("strip") or []]
        strip.extend(sorted(cache_headers - own.keys()))
        policies[category] = HeaderPolicy(
            category=category,
            csp=csp,
            headers=tuple({**base, **own}.items()),
            strip=tuple(strip),
        )
    return policies


class SecurityHeaders(Middleware):
    """Inject security headers into every response, short-circuits included.

    - Strips Server and X-Powered-By
    - Appends the CSP, sets X-Frame-Options, X-Content-Type-Options and
      X-XSS-Protection (plus HSTS outside development)
    - Sets cache directives for the route category recorded by RouteClassifier
    """

    skippable = False

    def __init__(self, settings: WebguardSettings | None = None) -> None:
        self._policies = build_header_policies(settings or get_settings())

    def policy_for(self, category: RouteCategory) -> HeaderPolicy:
        return self._policies[category]

    async def process_request(self, request: Request, context: RequestContext) -> Response | None:
        return None

    async def process_response(self, response: Response, context: RequestContext) -> Response:
        # Requests rejected before classification get the default policy
        category = context.route_category or RouteCategory.DEFAULT
        return self._policies[category].apply(response)
