"""Process-wide cookie and anti-forgery policy.

Built once during startup from settings and read without locks afterwards.
Every cookie the identity layer issues (application session, external
provider, anti-forgery) goes out under one of these policies.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog
from starlette.responses import Response

from webguard.config.loader import WebguardSettings

logger = structlog.get_logger()


class CookiePolicyError(RuntimeError):
    """Raised when the cookie policies are re-initialised or used too early."""


@dataclass(frozen=True)
class CookiePolicy:
    """Attributes forced onto a named cookie."""

    name: str
    http_only: bool = True
    secure: bool = True
    same_site: str = "strict"
    path: str = "/"

    def cookie_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for ``Response.set_cookie``."""
        return {
            "key": self.name,
            "httponly": self.http_only,
            "secure": self.secure,
            "samesite": self.same_site,
            "path": self.path,
        }

    def apply(self, response: Response, value: str, max_age: int | None = None) -> Response:
        response.set_cookie(value=value, max_age=max_age, **self.cookie_kwargs())
        return response

    def clear(self, response: Response) -> Response:
        response.delete_cookie(**self.cookie_kwargs())
        return response


@dataclass(frozen=True)
class AntiforgeryConfig:
    """Names used to transmit the anti-forgery token. Not user-influenced."""

    header_name: str = "X-CSRF-TOKEN"
    cookie_name: str = "__RequestVerificationToken"
    form_field_name: str = "__RequestVerificationToken"
    suppress_x_frame_options: bool = False


@dataclass(frozen=True)
class CookiePolicies:
    application: CookiePolicy
    external: CookiePolicy
    antiforgery: CookiePolicy
    antiforgery_config: AntiforgeryConfig

    def all(self) -> tuple[CookiePolicy, ...]:
        return (self.application, self.external, self.antiforgery)


def build_cookie_policies(settings: WebguardSettings) -> CookiePolicies:
    """Build the three cookie policies. All share HttpOnly, Secure and SameSite=Strict."""
    antiforgery_config = AntiforgeryConfig(
        header_name=settings.antiforgery_header_name,
        cookie_name=settings.antiforgery_cookie_name,
        form_field_name=settings.antiforgery_form_field_name,
    )
    return CookiePolicies(
        application=CookiePolicy(name=settings.application_cookie_name),
        external=CookiePolicy(name=settings.external_cookie_name),
        antiforgery=CookiePolicy(name=antiforgery_config.cookie_name),
        antiforgery_config=antiforgery_config,
    )


_policies: CookiePolicies | None = None


def init_cookie_policies(settings: WebguardSettings) -> CookiePolicies:
    """Install the process-wide cookie policies.

    Write-once: calling again with identical settings returns the installed
    policies, calling with different settings raises ``CookiePolicyError``.
    """
    global _policies
    policies = build_cookie_policies(settings)
    if _policies is not None:
        if _policies != policies:
            raise CookiePolicyError("Cookie policies are already initialised")
        return _policies
    _policies = policies
    logger.info(
        "cookie_policies_initialised",
        cookies=[p.name for p in policies.all()],
        same_site=policies.application.same_site,
    )
    return _policies


def get_cookie_policies() -> CookiePolicies:
    if _policies is None:
        raise CookiePolicyError("Cookie policies have not been initialised")
    return _policies


def reset_cookie_policies() -> None:
    """Reset the installed policies (for testing)."""
    global _policies
    _policies = None
