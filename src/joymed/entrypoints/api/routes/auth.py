"""Auth API routes shared by both portals, plus doctor self-service."""

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Response
from pydantic import BaseModel, EmailStr, Field

from joymed.core.auth.guard import Portal
from joymed.core.auth.lifecycle import (
    AccountLifecycleManager,
    PreregistrationRequest,
    ProfileUpdate,
    parse_request,
)
from joymed.core.auth.link import LinkIdentityResolver
from joymed.core.auth.login import SessionLoginFlow
from joymed.core.auth.types import Account
from joymed.core.exceptions import JoymedError
from joymed.entrypoints.api.deps import (
    Settings,
    get_lifecycle,
    get_login_flow,
    get_portal,
    get_resolver,
    get_settings,
)
from joymed.entrypoints.api.errors import http_error
from joymed.entrypoints.api.middleware.auth import RequireIdentity
from joymed.entrypoints.api.middleware.session import clear_session_cookie, set_session_cookie

router = APIRouter(prefix="/auth", tags=["auth"])

doctor_router = APIRouter(prefix="/auth", tags=["auth"])


class LoginRequest(BaseModel):
    """Login request body."""

    email: EmailStr
    password: str


class LoginResponse(BaseModel):
    """Login response. The credential itself only travels in the cookie."""

    role: str
    user: Account | None = None


class IdentifyByTokenRequest(BaseModel):
    """Link token identification body."""

    token: str


class IdentifyByIcpRequest(BaseModel):
    """ICP identification body."""

    icp_number: str = Field(alias="icpNumber")


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    response: Response,
    portal: Annotated[Portal, Depends(get_portal)],
    flow: Annotated[SessionLoginFlow, Depends(get_login_flow)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> LoginResponse:
    """Log in with email and password for this portal's role.

    A credential for the other portal's role is refused with 403
    ``wrong_portal`` and no cookie is set.
    """
    try:
        result = await flow.login(body.email, body.password, portal.role)
    except JoymedError as e:
        raise http_error(e) from None

    set_session_cookie(response, result.token, secure=settings.secure_cookies)
    return LoginResponse(role=result.claims.role.value, user=result.account)


@router.post("/logout")
async def logout(response: Response) -> dict[str, str]:
    """Log out by deleting the session cookie."""
    clear_session_cookie(response)
    return {"message": "Logged out"}


@doctor_router.post("/identify-by-token", response_model=Account)
async def identify_by_token(
    body: IdentifyByTokenRequest,
    resolver: Annotated[LinkIdentityResolver, Depends(get_resolver)],
) -> Account:
    """Identify a doctor by unique link token."""
    try:
        return await resolver.resolve(body.token)
    except JoymedError as e:
        raise http_error(e) from None


@doctor_router.post("/identify", response_model=Account)
async def identify_by_icp(
    body: IdentifyByIcpRequest,
    lifecycle: Annotated[AccountLifecycleManager, Depends(get_lifecycle)],
) -> Account:
    """Identify a doctor by ICP number."""
    try:
        return await lifecycle.identify_by_icp(body.icp_number)
    except JoymedError as e:
        raise http_error(e) from None


@doctor_router.post("/preregister", response_model=Account, status_code=201)
async def preregister(
    body: Annotated[dict[str, Any], Body()],
    lifecycle: Annotated[AccountLifecycleManager, Depends(get_lifecycle)],
) -> Account:
    """Preregister a doctor account; it stays pending until an admin decides."""
    try:
        request = parse_request(PreregistrationRequest, body)
        return await lifecycle.preregister(request)
    except JoymedError as e:
        raise http_error(e) from None


@doctor_router.get("/profile", response_model=Account)
async def get_profile(
    auth: RequireIdentity,
    lifecycle: Annotated[AccountLifecycleManager, Depends(get_lifecycle)],
) -> Account:
    """Get the caller's profile (session cookie or link token)."""
    try:
        return await lifecycle.get_profile(auth)
    except JoymedError as e:
        raise http_error(e) from None


@doctor_router.put("/profile", response_model=Account)
async def update_profile(
    body: Annotated[dict[str, Any], Body()],
    auth: RequireIdentity,
    lifecycle: Annotated[AccountLifecycleManager, Depends(get_lifecycle)],
) -> Account:
    """Update the caller's profile, including the credential mode."""
    try:
        update = parse_request(ProfileUpdate, body)
        return await lifecycle.update_profile(auth, update)
    except JoymedError as e:
        raise http_error(e) from None


@doctor_router.post("/regenerate-token", response_model=Account)
async def regenerate_own_token(
    auth: RequireIdentity,
    lifecycle: Annotated[AccountLifecycleManager, Depends(get_lifecycle)],
) -> Account:
    """Replace the caller's own link token. The old link stops working."""
    try:
        return await lifecycle.regenerate_link_token(auth, auth.subject_id)
    except JoymedError as e:
        raise http_error(e) from None
