"""FastAPI application definitions for both portals."""

from __future__ import annotations

from fastapi import FastAPI

from joymed import __version__
from joymed.core.auth.guard import ADMIN_PORTAL, DOCTOR_PORTAL, Portal
from joymed.entrypoints.api.deps import lifespan
from joymed.entrypoints.api.routes import build_router


def create_app(portal: Portal) -> FastAPI:
    """Create the application serving one portal."""
    app = FastAPI(
        title=f"joymed-{portal.name}",
        description=f"JoyMed {portal.name} portal",
        version=__version__,
        lifespan=lifespan,
        redirect_slashes=False,
    )
    app.state.portal = portal

    app.include_router(build_router(portal))

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy", "portal": portal.name}

    return app


admin_app = create_app(ADMIN_PORTAL)
doctor_app = create_app(DOCTOR_PORTAL)
