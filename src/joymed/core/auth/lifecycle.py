"""Account lifecycle: preregistration, approval and credential upkeep.

Every mutation is a single remote call. This tier validates input and the
caller's role, then forwards; it never reads, modifies and writes an account
locally, so the remote API alone serialises concurrent changes.
"""

from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, EmailStr, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from joymed.core.auth.context import AuthContext
from joymed.core.auth.gateway import AccountGateway
from joymed.core.auth.types import Account, AccountStatus, Role
from joymed.core.exceptions import Forbidden, ValidationFailed, WrongPortal

logger = structlog.get_logger()

MIN_PASSWORD_LENGTH = 8


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PreregistrationRequest(_CamelModel):
    """Self-service doctor registration."""

    icp_number: str = Field(..., min_length=1)
    city_id: int = Field(..., gt=0)
    require_password: bool = False
    email: EmailStr | None = None
    password: str | None = Field(default=None, min_length=MIN_PASSWORD_LENGTH)

    @field_validator("icp_number")
    @classmethod
    def strip_icp_number(cls, value: str) -> str:
        """Reject blank license numbers."""
        value = value.strip()
        if not value:
            raise ValueError("ICP number is required")
        return value


class ProfileUpdate(_CamelModel):
    """Self-service profile change. Unset fields are left untouched."""

    email: EmailStr | None = None
    city_id: int | None = Field(default=None, gt=0)
    require_password: bool | None = None
    password: str | None = Field(default=None, min_length=MIN_PASSWORD_LENGTH)


def parse_request(model: type[BaseModel], data: dict[str, Any]) -> Any:
    """Validate raw input into a request model.

    Raises:
        ValidationFailed: With one message per offending field.
    """
    try:
        return model.model_validate(data)
    except ValidationError as e:
        fields = {
            ".".join(str(part) for part in error["loc"]) or "__root__": error["msg"]
            for error in e.errors()
        }
        raise ValidationFailed("Invalid input", fields=fields) from None


class AccountLifecycleManager:
    """Drives accounts through registration, approval and profile changes."""

    def __init__(self, gateway: AccountGateway) -> None:
        """Initialize with the account gateway.

        Args:
            gateway: Gateway to the remote account API.
        """
        self._gateway = gateway

    async def preregister(self, request: PreregistrationRequest) -> Account:
        """Create a pending account awaiting admin approval.

        Email and password are required iff the account will log in with a
        password; otherwise the remote API mints a link token. No credential
        is issued here.

        Args:
            request: Registration input.

        Returns:
            The created account, status pending.

        Raises:
            ValidationFailed: Missing or malformed input, or a duplicate
                email/ICP number reported by the remote API.
            RemoteUnavailable: Remote API unreachable.
        """
        fields: dict[str, str] = {}
        if request.require_password:
            if not request.email:
                fields["email"] = "Email is required when requirePassword is true"
            if not request.password:
                fields["password"] = "Password is required when requirePassword is true"
        if fields:
            raise ValidationFailed("Invalid registration", fields=fields)

        payload = request.model_dump(by_alias=True, exclude_none=True)
        if not request.require_password:
            payload.pop("password", None)

        account = await self._gateway.preregister(payload)
        logger.info(
            "account_preregistered",
            account_id=account.id,
            require_password=account.require_password,
            status=account.status.value,
        )
        return account

    async def validate(
        self,
        actor: AuthContext,
        account_id: str,
        status: AccountStatus,
    ) -> Account:
        """Approve or reject a pending account.

        Whether a non-pending account may be re-validated is left to the
        remote API; its refusal comes back as ValidationFailed.

        Args:
            actor: Caller identity, must be an admin.
            account_id: Account to transition.
            status: approved or rejected.

        Returns:
            The updated account.

        Raises:
            WrongPortal: Caller is not an admin.
            ValidationFailed: Status is not a terminal decision.
            RemoteUnavailable: Remote API unreachable.
        """
        self._require_admin(actor)
        if status not in (AccountStatus.APPROVED, AccountStatus.REJECTED):
            raise ValidationFailed(
                "Invalid status",
                fields={"status": "Status must be approved or rejected"},
            )

        account = await self._gateway.validate_account(actor.credentials, account_id, status)
        logger.info(
            "account_validated",
            account_id=account_id,
            status=status.value,
            admin_id=actor.subject_id,
        )
        return account

    async def regenerate_link_token(self, actor: AuthContext, account_id: str) -> Account:
        """Replace an account's link token.

        After success the previous token no longer resolves; the swap itself
        is atomic on the remote side.

        Args:
            actor: Caller identity, an admin or the account owner.
            account_id: Account whose token is replaced.

        Returns:
            The account carrying its new link token.

        Raises:
            Forbidden: A doctor targeting someone else's account.
            RemoteUnavailable: Remote API unreachable.
        """
        if not actor.is_admin and actor.subject_id != account_id:
            raise Forbidden()

        account = await self._gateway.regenerate_link_token(actor.credentials, account_id)
        logger.info(
            "link_token_regenerated",
            account_id=account_id,
            actor_id=actor.subject_id,
            self_service=actor.subject_id == account_id,
        )
        return account

    async def update_profile(self, actor: AuthContext, update: ProfileUpdate) -> Account:
        """Update the caller's own account.

        Switching to password mode disables link access from the next
        resolution on; session credentials already issued stay valid until
        they expire.

        Args:
            actor: Caller identity, must be a doctor.
            update: Fields to change.

        Returns:
            The updated account.

        Raises:
            WrongPortal: Caller is an admin.
            ValidationFailed: Inconsistent combination of fields.
            RemoteUnavailable: Remote API unreachable.
        """
        self._require_doctor(actor)

        current = actor.account
        fields: dict[str, str] = {}
        if update.require_password is False and update.password:
            fields["password"] = "Password can only be set when requirePassword is true"
        if current is not None and update.require_password and not current.require_password:
            if not update.password:
                fields["password"] = "Password is required when enabling password login"
            if not (update.email or current.email):
                fields["email"] = "Email is required when requirePassword is true"
        if fields:
            raise ValidationFailed("Invalid profile update", fields=fields)

        changes = update.model_dump(by_alias=True, exclude_unset=True)
        account = await self._gateway.update_profile(actor.credentials, changes)
        logger.info(
            "profile_updated",
            account_id=actor.subject_id,
            changed=sorted(changes),
            require_password=account.require_password,
        )
        return account

    async def get_profile(self, actor: AuthContext) -> Account:
        """Fetch the caller's own account."""
        self._require_doctor(actor)
        return await self._gateway.get_profile(actor.credentials)

    async def list_pending(self, actor: AuthContext) -> list[Account]:
        """List accounts awaiting approval (admin only)."""
        self._require_admin(actor)
        return await self._gateway.list_pending(actor.credentials)

    async def identify_by_icp(self, icp_number: str) -> Account:
        """Look up an account projection by license number.

        Raises:
            ValidationFailed: Blank license number.
            InvalidToken: No such account.
        """
        icp_number = icp_number.strip()
        if not icp_number:
            raise ValidationFailed("Invalid input", fields={"icpNumber": "ICP number is required"})
        return await self._gateway.identify_by_icp(icp_number)

    def _require_admin(self, actor: AuthContext) -> None:
        if actor.role != Role.ADMIN:
            raise WrongPortal("Admin access required")

    def _require_doctor(self, actor: AuthContext) -> None:
        if actor.role != Role.DOCTOR:
            raise WrongPortal("Doctor access required")
