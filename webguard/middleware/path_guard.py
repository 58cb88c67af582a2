"""Path traversal guard middleware, first in the pipeline."""

from __future__ import annotations

import structlog
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response

from webguard.middleware.pipeline import Middleware, RequestContext
from webguard.utils.sanitize import strip_control_chars

logger = structlog.get_logger()

TRAVERSAL_MARKERS = ("..", "//", "\\\\")

REJECTION_BODY = "Invalid path detected"


def is_traversal_path(path: str) -> bool:
    """True if the path contains a traversal or doubled-separator sequence."""
    return any(marker in path for marker in TRAVERSAL_MARKERS)


class PathTraversalGuard(Middleware):
    """Reject traversal-shaped paths with a 400 before routing sees them.

    Stricter than ``sanitize_path``: no legitimate route contains a doubled
    separator, so those are rejected too. Both the decoded path and the raw
    path as sent on the wire are checked.
    """

    async def process_request(self, request: Request, context: RequestContext) -> Response | None:
        path = request.scope.get("path", "") or ""
        raw_path = request.scope.get("raw_path") or b""
        if isinstance(raw_path, bytes):
            raw_path = raw_path.decode("latin-1")

        if is_traversal_path(path) or is_traversal_path(raw_path):
            logger.warning(
                "path_traversal_blocked",
                request_id=context.request_id,
                path=strip_control_chars(path)[:256],
            )
            return PlainTextResponse(REJECTION_BODY, status_code=400)

        return None
