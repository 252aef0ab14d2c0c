"""Portal page routes.

Pages are guarded navigations: the guard either lets the visitor through, in
which case a small JSON page model is returned for the front-end to render, or
sends them elsewhere with a redirect.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Cookie, Depends, Query
from fastapi.responses import RedirectResponse

from joymed.core.auth.guard import GuardDecision, PortalGuard
from joymed.core.exceptions import JoymedError
from joymed.entrypoints.api.deps import get_guard
from joymed.entrypoints.api.errors import http_error

router = APIRouter(tags=["pages"])

doctor_router = APIRouter(tags=["pages"])

admin_router = APIRouter(tags=["pages"])


def _page(name: str, guard: PortalGuard, decision: GuardDecision, **extra: Any) -> dict[str, Any]:
    identity: dict[str, Any] | None = None
    if decision.claims is not None:
        identity = {"id": decision.claims.subject_id, "role": decision.claims.role.value}
    elif decision.account is not None:
        identity = {"id": decision.account.id, "role": decision.account.role.value}

    return {
        "page": name,
        "portal": guard.portal.name,
        "state": decision.state.value,
        "reason": decision.reason.value if decision.reason else None,
        "identity": identity,
        **extra,
    }


async def _guarded_page(
    name: str,
    guard: PortalGuard,
    auth_token: str | None,
    token: str | None = None,
) -> dict[str, Any] | RedirectResponse:
    try:
        decision = await guard.check_page(auth_token, token)
    except JoymedError as e:
        raise http_error(e) from None

    if decision.redirect_to:
        return RedirectResponse(decision.redirect_to)
    return _page(name, guard, decision)


@router.get("/login", response_model=None)
async def login_page(
    guard: Annotated[PortalGuard, Depends(get_guard)],
    auth_token: Annotated[str | None, Cookie()] = None,
    error: Annotated[str | None, Query()] = None,
) -> dict[str, Any] | RedirectResponse:
    """Login page.

    Visitors already holding this portal's session go home; holders of the
    other portal's session see the explanation exactly once.
    """
    decision = guard.check_login_page(auth_token, current_error=error)
    if decision.redirect_to:
        return RedirectResponse(decision.redirect_to)
    return _page("login", guard, decision, error=error)


@doctor_router.get("/", response_model=None)
async def doctor_home(
    guard: Annotated[PortalGuard, Depends(get_guard)],
    auth_token: Annotated[str | None, Cookie()] = None,
    token: Annotated[str | None, Query()] = None,
) -> dict[str, Any] | RedirectResponse:
    """Doctor home. Open to anonymous visitors, who get the identify form."""
    return await _guarded_page("home", guard, auth_token, token)


@doctor_router.get("/register", response_model=None)
async def register_page(
    guard: Annotated[PortalGuard, Depends(get_guard)],
    auth_token: Annotated[str | None, Cookie()] = None,
) -> dict[str, Any] | RedirectResponse:
    """Preregistration page."""
    return await _guarded_page("register", guard, auth_token)


@doctor_router.get("/settings", response_model=None)
async def settings_page(
    guard: Annotated[PortalGuard, Depends(get_guard)],
    auth_token: Annotated[str | None, Cookie()] = None,
    token: Annotated[str | None, Query()] = None,
) -> dict[str, Any] | RedirectResponse:
    """Doctor settings page. Requires a session or a link token."""
    try:
        decision = await guard.check_page(auth_token, token)
    except JoymedError as e:
        raise http_error(e) from None

    if decision.redirect_to:
        return RedirectResponse(decision.redirect_to)
    if not decision.is_authenticated:
        return RedirectResponse(guard.portal.login_url())
    return _page("settings", guard, decision)


@admin_router.get("/dashboard", response_model=None)
async def dashboard_page(
    guard: Annotated[PortalGuard, Depends(get_guard)],
    auth_token: Annotated[str | None, Cookie()] = None,
) -> dict[str, Any] | RedirectResponse:
    """Admin dashboard."""
    return await _guarded_page("dashboard", guard, auth_token)
