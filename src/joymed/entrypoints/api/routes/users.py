"""Admin account management routes."""

from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from joymed.core.auth.lifecycle import AccountLifecycleManager
from joymed.core.auth.types import Account, AccountStatus
from joymed.core.exceptions import JoymedError
from joymed.entrypoints.api.deps import get_lifecycle
from joymed.entrypoints.api.errors import http_error
from joymed.entrypoints.api.middleware.auth import RequireIdentity

router = APIRouter(prefix="/users", tags=["users"])


class ValidateRequest(BaseModel):
    """Approval decision body."""

    status: AccountStatus


@router.get("/pending", response_model=list[Account])
async def list_pending(
    auth: RequireIdentity,
    lifecycle: Annotated[AccountLifecycleManager, Depends(get_lifecycle)],
) -> list[Account]:
    """List accounts awaiting approval."""
    try:
        return await lifecycle.list_pending(auth)
    except JoymedError as e:
        raise http_error(e) from None


@router.post("/{account_id}/validate", response_model=Account)
async def validate_account(
    account_id: str,
    body: ValidateRequest,
    auth: RequireIdentity,
    lifecycle: Annotated[AccountLifecycleManager, Depends(get_lifecycle)],
) -> Account:
    """Approve or reject a pending account."""
    try:
        return await lifecycle.validate(auth, account_id, body.status)
    except JoymedError as e:
        raise http_error(e) from None


@router.post("/{account_id}/regenerate-token", response_model=Account)
async def regenerate_token(
    account_id: str,
    auth: RequireIdentity,
    lifecycle: Annotated[AccountLifecycleManager, Depends(get_lifecycle)],
) -> Account:
    """Replace a doctor's link token."""
    try:
        return await lifecycle.regenerate_link_token(auth, account_id)
    except JoymedError as e:
        raise http_error(e) from None
