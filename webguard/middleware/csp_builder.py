"""Pure-function CSP (Content-Security-Policy) utilities."""

from __future__ import annotations

from collections.abc import Iterable

# Directives that may load from the configured CDN origins
CDN_DIRECTIVES = ("script-src", "style-src", "font-src")


def parse_csp(csp_string: str) -> dict[str, list[str]]:
    """Parse a CSP string into an ordered {directive: [sources]} dict.

    Example:
        >>> parse_csp("default-src 'self'; img-src 'self' data:")
        {"default-src": ["'self'"], "img-src": ["'self'", "data:"]}
    """
    directives: dict[str, list[str]] = {}
    for part in (csp_string or "").split(";"):
        tokens = part.split()
        if tokens:
            directives[tokens[0].lower()] = tokens[1:]
    return directives


def add_sources(
    directives: dict[str, list[str]],
    origins: Iterable[str],
    targets: Iterable[str] = CDN_DIRECTIVES,
) -> dict[str, list[str]]:
    """Return a copy with each origin allowed on each target directive.

    Target directives missing from the policy start from ``'self'``.
    Existing sources keep their position and duplicates are dropped.
    """
    result = {name: list(sources) for name, sources in directives.items()}
    origins = [o for o in origins if o]
    for name in targets:
        sources = result.setdefault(name, ["'self'"])
        for origin in origins:
            if origin not in sources:
                sources.append(origin)
    return result


def build_csp(directives: dict[str, list[str]]) -> str:
    """Build a CSP string from an ordered {directive: [sources]} dict.

    Example:
        >>> build_csp({"default-src": ["'self'"], "frame-ancestors": ["'none'"]})
        "default-src 'self'; frame-ancestors 'none'"
    """
    return "; ".join(
        " ".join([name, *sources]) for name, sources in directives.items()
    )
