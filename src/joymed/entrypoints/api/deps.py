"""Dependency injection and application lifespan management."""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Annotated

from fastapi import Depends, Request

from joymed.adapters.auth import InMemoryAccountGateway, RemoteAccountGateway
from joymed.core.auth.context import AuthContextBuilder
from joymed.core.auth.gateway import AccountGateway
from joymed.core.auth.guard import Portal, PortalGuard
from joymed.core.auth.lifecycle import AccountLifecycleManager
from joymed.core.auth.link import LinkIdentityResolver
from joymed.core.auth.login import SessionLoginFlow
from joymed.core.auth.types import AccountStatus, Role

if TYPE_CHECKING:
    from fastapi import FastAPI

logger = logging.getLogger(__name__)


class Settings:
    """Application settings loaded from environment."""

    def __init__(self) -> None:
        """Load settings from environment variables.

        Raises:
            ValueError: BACKEND_URL is not an absolute http(s) URL.
        """
        self.backend_url = os.getenv("BACKEND_URL", "http://localhost:3001").strip().rstrip("/")
        if not self.backend_url.startswith(("http://", "https://")):
            raise ValueError(
                f"BACKEND_URL must start with http:// or https://, got {self.backend_url!r}"
            )
        self.backend_api_prefix = os.getenv("BACKEND_API_PREFIX", "/api")
        self.app_env = os.getenv("APP_ENV", "development").lower()

        # Unset means no timeout: remote calls fail only when the remote does.
        timeout = os.getenv("REMOTE_API_TIMEOUT", "")
        self.remote_api_timeout = float(timeout) if timeout else None

        self.demo_mode = os.getenv("JOYMED_DEMO_MODE", "").lower() == "true"
        self.jwt_secret_key = os.getenv("JWT_SECRET_KEY", "dev-secret-change-in-production")

    @property
    def remote_api_url(self) -> str:
        """Remote API root including its path prefix."""
        prefix = self.backend_api_prefix.strip("/")
        return f"{self.backend_url}/{prefix}" if prefix else self.backend_url

    @property
    def secure_cookies(self) -> bool:
        """Whether session cookies carry the Secure attribute."""
        return self.app_env == "production"


settings = Settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan - setup and teardown.

    Creates the account gateway shared by every request and closes its HTTP
    client on shutdown.
    """
    gateway: AccountGateway
    if settings.demo_mode:
        logger.info("Running in DEMO MODE - using seeded in-memory accounts")
        gateway = _seed_demo_gateway(settings.jwt_secret_key)
    else:
        gateway = RemoteAccountGateway(
            settings.remote_api_url,
            timeout=settings.remote_api_timeout,
        )
        logger.info(f"remote_gateway_configured: url={settings.remote_api_url}")

    app.state.gateway = gateway

    yield

    if isinstance(gateway, RemoteAccountGateway):
        await gateway.aclose()


def _seed_demo_gateway(secret: str) -> InMemoryAccountGateway:
    """Build an in-memory gateway with one account per state."""
    gateway = InMemoryAccountGateway(secret)
    gateway.add_account(
        Role.ADMIN,
        email="admin@joymed.cz",
        password="admin-password",  # pragma: allowlist secret
    )
    gateway.add_account(
        Role.DOCTOR,
        email="doctor@joymed.cz",
        password="doctor-password",  # pragma: allowlist secret
        icp_number="10000001",
        city_id=1,
    )
    link_doctor = gateway.add_account(Role.DOCTOR, icp_number="10000002", city_id=1)
    gateway.add_account(
        Role.DOCTOR,
        icp_number="10000003",
        city_id=1,
        status=AccountStatus.PENDING,
    )
    logger.info(f"demo_link_doctor: /?token={link_doctor.link_token}")
    return gateway


def get_settings() -> Settings:
    """Get application settings."""
    return settings


def get_portal(request: Request) -> Portal:
    """Get the portal this application serves."""
    portal: Portal = request.app.state.portal
    return portal


def get_gateway(request: Request) -> AccountGateway:
    """Get the account gateway from app state."""
    gateway: AccountGateway = request.app.state.gateway
    return gateway


def get_resolver(
    gateway: Annotated[AccountGateway, Depends(get_gateway)],
) -> LinkIdentityResolver:
    """Get a link identity resolver."""
    return LinkIdentityResolver(gateway)


def get_login_flow(
    gateway: Annotated[AccountGateway, Depends(get_gateway)],
) -> SessionLoginFlow:
    """Get the session login flow."""
    return SessionLoginFlow(gateway)


def get_lifecycle(
    gateway: Annotated[AccountGateway, Depends(get_gateway)],
) -> AccountLifecycleManager:
    """Get the account lifecycle manager."""
    return AccountLifecycleManager(gateway)


def get_context_builder(
    resolver: Annotated[LinkIdentityResolver, Depends(get_resolver)],
) -> AuthContextBuilder:
    """Get the auth context builder."""
    return AuthContextBuilder(resolver)


def get_guard(
    portal: Annotated[Portal, Depends(get_portal)],
    resolver: Annotated[LinkIdentityResolver, Depends(get_resolver)],
) -> PortalGuard:
    """Get the page guard for this portal."""
    return PortalGuard(portal, resolver)
