"""Cookie policy enforcer: forces HttpOnly, Secure and SameSite=Strict on every Set-Cookie."""

from __future__ import annotations

import structlog
from starlette.requests import Request
from starlette.responses import Response

from webguard.middleware.pipeline import Middleware, RequestContext

logger = structlog.get_logger()

_OVERRIDDEN_ATTRIBUTES = frozenset({"httponly", "secure", "samesite"})
_FORCED_ATTRIBUTES = ("HttpOnly", "Secure", "SameSite=Strict")


def harden_set_cookie(header_value: str) -> str:
    """Rewrite one Set-Cookie value so it carries the strict attributes.

    The name=value pair and all other attributes (Path, Max-Age, ...) are
    kept as they were. Any existing SameSite is replaced.
    """
    parts = [p.strip() for p in header_value.split(";")]
    pair, attributes = parts[0], parts[1:]
    kept = [
        attr for attr in attributes
        if attr and attr.split("=", 1)[0].strip().lower() not in _OVERRIDDEN_ATTRIBUTES
    ]
    return "; ".join([pair, *kept, *_FORCED_ATTRIBUTES])


class CookiePolicyEnforcer(Middleware):
    """Apply the process-wide cookie policy to cookies set by any handler.

    Cookies issued through ``CookiePolicy.apply`` already comply; this
    catches anything the downstream handlers set directly.
    """

    async def process_request(self, request: Request, context: RequestContext) -> Response | None:
        return None

    async def process_response(self, response: Response, context: RequestContext) -> Response:
        cookies = response.headers.getlist("set-cookie")
        if not cookies:
            return response

        hardened = [harden_set_cookie(value) for value in cookies]
        if hardened != cookies:
            del response.headers["set-cookie"]
            for value in hardened:
                response.headers.append("set-cookie", value)
            logger.debug("cookies_hardened", request_id=context.request_id, count=len(hardened))
        return response
