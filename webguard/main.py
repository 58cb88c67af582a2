"""FastAPI host application wrapping the request hardening pipeline."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable
from contextlib import asynccontextmanager

import structlog
from fastapi import APIRouter, FastAPI
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response

from webguard.config.cookie_policy import CookiePolicies, init_cookie_policies
from webguard.config.loader import SeedConfig, WebguardSettings, build_seed_config, load_settings
from webguard.health import router as health_router
from webguard.logging_config import bind_request, setup_logging
from webguard.middleware.antiforgery import AntiforgeryValidator
from webguard.middleware.cookie_enforcer import CookiePolicyEnforcer
from webguard.middleware.https_redirect import HttpsRedirect
from webguard.middleware.path_guard import PathTraversalGuard
from webguard.middleware.pipeline import MiddlewarePipeline, RequestContext
from webguard.middleware.route_classifier import RouteClassifier
from webguard.middleware.security_headers import SecurityHeaders

logger = structlog.get_logger()

Seeder = Callable[[SeedConfig], Awaitable[None]]


def build_pipeline(settings: WebguardSettings, policies: CookiePolicies) -> MiddlewarePipeline:
    """Build the ordered middleware pipeline.

    Requests run top to bottom, responses bottom to top. SecurityHeaders sits
    above the cookie stages, so in the response phase the anti-forgery cookie
    is issued, then every Set-Cookie is hardened, and headers are applied last.
    """
    pipeline = MiddlewarePipeline()
    pipeline.add(PathTraversalGuard())               # 0: reject before anything else runs
    pipeline.add(HttpsRedirect(settings), enabled=settings.https_redirect and not settings.is_development)  # 1
    pipeline.add(RouteClassifier(settings))          # 2: category for headers and anti-forgery
    pipeline.add(SecurityHeaders(settings))          # 3: headers and cache directives, applied last
    pipeline.add(CookiePolicyEnforcer())             # 4: harden every Set-Cookie, antiforgery's included
    pipeline.add(AntiforgeryValidator(policies), enabled=settings.antiforgery_enabled)  # 5
    return pipeline


class PipelineHost(BaseHTTPMiddleware):
    """Run every request through the pipeline around the app's own routes.

    The routes (health, plus whatever controllers are mounted) are the
    downstream handler. They only run if no stage short-circuits.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        pipeline: MiddlewarePipeline | None = getattr(request.app.state, "pipeline", None)
        if pipeline is None:
            return PlainTextResponse("Service not initialized", status_code=503)

        context = RequestContext()
        bind_request(context.request_id, request.method, request.url.path)
        request.state.webguard_context = context

        response = await pipeline.process_request(request, context)
        if response is None:
            try:
                response = await call_next(request)
            except Exception:
                logger.exception("downstream_error", request_id=context.request_id)
                response = PlainTextResponse("Internal server error", status_code=500)

        # Short-circuit responses still go through the response phase
        return await pipeline.process_response(response, context)


def create_app(
    settings: WebguardSettings | None = None,
    routers: Iterable[APIRouter] = (),
    seeders: Iterable[Seeder] = (),
) -> FastAPI:
    """Create the host app.

    ``routers`` are the controllers the pipeline protects. ``seeders`` run
    once at startup with an explicit ``SeedConfig``.
    """
    seeders = tuple(seeders)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        cfg = settings or load_settings()
        setup_logging(log_level=cfg.log_level, json_format=cfg.log_json)

        policies = init_cookie_policies(cfg)

        seed_config = build_seed_config(cfg)
        for seeder in seeders:
            await seeder(seed_config)

        app.state.settings = cfg
        app.state.pipeline = build_pipeline(cfg, policies)
        logger.info("webguard_started", environment=cfg.environment, stages=app.state.pipeline.names)

        yield

        app.state.pipeline = None
        logger.info("webguard_stopped")

    app = FastAPI(title="Webguard", lifespan=lifespan)
    app.state.pipeline = None
    app.add_middleware(PipelineHost)
    app.include_router(health_router)
    for router in routers:
        app.include_router(router)
    return app


app = create_app()
