"""Env var config loading with pydantic-settings."""

from __future__ import annotations

from dataclasses import dataclass

import structlog
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger()

_ENTITY_RESOURCES = ("messages", "companies", "cars", "employees")


def _default_sensitive_prefixes() -> list[str]:
    prefixes = ["/identity", "/account"]
    for resource in _ENTITY_RESOURCES:
        prefixes.append(f"/{resource}/create")
        prefixes.append(f"/{resource}/edit")
    return prefixes


class WebguardSettings(BaseSettings):
    """Hardening layer configuration, model defaults overridden by env vars.

    Everything here is fixed at deploy time. Nothing is read from the
    request, and nothing may change it once the app has started.
    """

    model_config = SettingsConfigDict(
        env_prefix="WEBGUARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    environment: str = "production"
    listen_port: int = 8080
    log_level: str = "info"
    log_json: bool = True

    # Route classification tables
    sensitive_prefixes: list[str] = _default_sensitive_prefixes()
    sensitive_fragments: list[str] = ["/home/error"]
    static_prefixes: list[str] = ["/wwwroot", "/lib", "/css", "/js"]

    # Security headers
    csp_cdn_origins: list[str] = ["https://cdn.jsdelivr.net"]
    hsts_max_age: int = 2592000  # 30 days

    # HTTPS redirection (never in development)
    https_redirect: bool = True
    https_redirect_status: int = 307
    https_exempt_paths: list[str] = ["/health", "/ready"]
    trust_forwarded_proto: bool = False

    # Cookies
    application_cookie_name: str = "webguard_app"
    external_cookie_name: str = "webguard_external"

    # Anti-forgery
    antiforgery_enabled: bool = True
    antiforgery_header_name: str = "X-CSRF-TOKEN"
    antiforgery_cookie_name: str = "__RequestVerificationToken"
    antiforgery_form_field_name: str = "__RequestVerificationToken"

    # Handed to startup seeders only
    demo_password: str = ""

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"


@dataclass(frozen=True)
class SeedConfig:
    """Explicit configuration handed to each startup seeder."""

    demo_password: str = ""


def build_seed_config(settings: WebguardSettings) -> SeedConfig:
    return SeedConfig(demo_password=settings.demo_password)


_settings: WebguardSettings | None = None


def get_settings() -> WebguardSettings:
    """Get or create the singleton settings instance."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def load_settings() -> WebguardSettings:
    """Load settings from env vars (env vars override model defaults)."""
    global _settings
    _settings = WebguardSettings()
    logger.info("config_loaded", environment=_settings.environment, port=_settings.listen_port)
    return _settings
