"""API and page route modules.

The two portals share the login/logout routes and the login page; everything
else is mounted on one portal only.
"""

from fastapi import APIRouter

from joymed.core.auth.guard import Portal
from joymed.core.auth.types import Role
from joymed.entrypoints.api.routes.auth import doctor_router as doctor_auth_router
from joymed.entrypoints.api.routes.auth import router as auth_router
from joymed.entrypoints.api.routes.pages import admin_router as admin_pages_router
from joymed.entrypoints.api.routes.pages import doctor_router as doctor_pages_router
from joymed.entrypoints.api.routes.pages import router as pages_router
from joymed.entrypoints.api.routes.users import router as users_router


def build_router(portal: Portal) -> APIRouter:
    """Assemble the routes served by one portal."""
    api_router = APIRouter(prefix="/api")
    api_router.include_router(auth_router)

    router = APIRouter()
    router.include_router(pages_router)

    if portal.role == Role.ADMIN:
        api_router.include_router(users_router)
        router.include_router(admin_pages_router)
    else:
        api_router.include_router(doctor_auth_router)
        router.include_router(doctor_pages_router)

    router.include_router(api_router)
    return router
