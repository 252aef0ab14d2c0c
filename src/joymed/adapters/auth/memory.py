"""In-memory account gateway for demo mode and testing.

Plays the part of the remote system of record: it issues and verifies
session credentials, owns link tokens and enforces the approval and
password-mode rules the real API enforces.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import bcrypt
import jwt
import structlog

from joymed.core.auth import jwt as token_codec
from joymed.core.auth.link import check_link_eligibility
from joymed.core.auth.types import Account, AccountStatus, Credentials, Role
from joymed.core.exceptions import (
    AccountPending,
    AccountRejected,
    Forbidden,
    InvalidCredentials,
    InvalidToken,
    Unauthorized,
    ValidationFailed,
    WrongPortal,
)

logger = structlog.get_logger()


def _hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def _password_matches(password: str, password_hash: str | None) -> bool:
    if not password or not password_hash:
        return False
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))


def _new_link_token() -> str:
    return str(uuid.uuid4())


@dataclass
class _StoredAccount:
    account: Account
    password_hash: str | None = None


class InMemoryAccountGateway:
    """Account gateway backed by a dict.

    Mutations run under a lock, so a regeneration replaces the stored
    token in one step and concurrent resolutions see either the old or the
    new value, never both.

    Attributes:
        calls: Log of operation names, in call order.
    """

    def __init__(self, secret: str) -> None:
        """Initialize the gateway.

        Args:
            secret: Signing secret for the session credentials it issues.
        """
        self._secret = secret
        self._accounts: dict[str, _StoredAccount] = {}
        self._lock = asyncio.Lock()
        self.calls: list[str] = []

    def add_account(
        self,
        role: Role,
        email: str | None = None,
        password: str | None = None,
        icp_number: str | None = None,
        city_id: int | None = None,
        status: AccountStatus = AccountStatus.APPROVED,
        require_password: bool | None = None,
    ) -> Account:
        """Seed an account directly, bypassing registration rules.

        Accounts without a password get a link token.
        """
        if require_password is None:
            require_password = password is not None
        now = datetime.now(UTC)
        account = Account(
            id=str(uuid.uuid4()),
            role=role,
            email=email,
            icp_number=icp_number,
            city_id=city_id,
            require_password=require_password,
            link_token=None if require_password else _new_link_token(),
            status=status,
            created_at=now,
            updated_at=now,
        )
        self._accounts[account.id] = _StoredAccount(
            account=account,
            password_hash=_hash_password(password) if password else None,
        )
        return account

    def get(self, account_id: str) -> Account | None:
        """Return the stored account, if any."""
        stored = self._accounts.get(account_id)
        return stored.account if stored else None

    async def login(self, email: str, password: str) -> tuple[str, Account | None]:
        """Verify the password and issue a session credential."""
        self.calls.append("login")
        stored = self._find(lambda a: a.email is not None and a.email == email)
        if stored is None or not _password_matches(password, stored.password_hash):
            raise InvalidCredentials()

        account = stored.account
        if account.status == AccountStatus.PENDING:
            raise AccountPending()
        if account.status == AccountStatus.REJECTED:
            raise AccountRejected()

        token = token_codec.encode(account.id, account.role, self._secret, email=account.email)
        return token, account

    async def identify_by_token(self, token: str) -> Account:
        """Resolve a link token to an eligible account."""
        self.calls.append("identify_by_token")
        async with self._lock:
            stored = self._find(lambda a: a.link_token is not None and a.link_token == token)
        if stored is None:
            raise InvalidToken()
        check_link_eligibility(stored.account)
        return stored.account

    async def identify_by_icp(self, icp_number: str) -> Account:
        """Look up an account by ICP number."""
        self.calls.append("identify_by_icp")
        stored = self._find(lambda a: a.icp_number == icp_number)
        if stored is None:
            raise InvalidToken("No account with this ICP number")
        return stored.account.model_copy(update={"link_token": None})

    async def preregister(self, payload: dict[str, Any]) -> Account:
        """Create a pending doctor account."""
        self.calls.append("preregister")
        icp_number = payload.get("icpNumber")
        email = payload.get("email")
        require_password = bool(payload.get("requirePassword", False))

        async with self._lock:
            fields: dict[str, str] = {}
            if self._find(lambda a: a.icp_number == icp_number):
                fields["icpNumber"] = "ICP number already exists"
            if email and self._find(lambda a: a.email == email):
                fields["email"] = "Email already exists"
            if fields:
                raise ValidationFailed("Account already exists", fields=fields)

            account = self.add_account(
                role=Role.DOCTOR,
                email=email,
                password=payload.get("password") if require_password else None,
                icp_number=icp_number,
                city_id=payload.get("cityId"),
                status=AccountStatus.PENDING,
                require_password=require_password,
            )
        return account

    async def validate_account(
        self,
        credentials: Credentials,
        account_id: str,
        status: AccountStatus,
    ) -> Account:
        """Move a pending account to approved or rejected."""
        self.calls.append("validate_account")
        self._require_admin(self._authenticate(credentials))
        async with self._lock:
            stored = self._doctor(account_id)
            if stored.account.status != AccountStatus.PENDING:
                raise ValidationFailed(
                    f"Account is already {stored.account.status.value}",
                    fields={"status": "Only pending accounts can be validated"},
                )
            stored.account = stored.account.model_copy(
                update={"status": status, "updated_at": datetime.now(UTC)}
            )
            return stored.account

    async def regenerate_link_token(self, credentials: Credentials, account_id: str) -> Account:
        """Atomically replace a link token."""
        self.calls.append("regenerate_link_token")
        caller = self._authenticate(credentials)
        if caller.role != Role.ADMIN and caller.id != account_id:
            raise Forbidden()

        async with self._lock:
            stored = self._doctor(account_id)
            if stored.account.require_password:
                raise ValidationFailed(
                    "Accounts that require a password have no link token",
                    fields={"requirePassword": "Link tokens are disabled for this account"},
                )
            stored.account = stored.account.model_copy(
                update={"link_token": _new_link_token(), "updated_at": datetime.now(UTC)}
            )
            return stored.account

    async def list_pending(self, credentials: Credentials) -> list[Account]:
        """List pending accounts."""
        self.calls.append("list_pending")
        self._require_admin(self._authenticate(credentials))
        return [
            s.account for s in self._accounts.values() if s.account.status == AccountStatus.PENDING
        ]

    async def get_profile(self, credentials: Credentials) -> Account:
        """Return the caller's account."""
        self.calls.append("get_profile")
        caller = self._authenticate(credentials)
        if caller.role != Role.DOCTOR:
            raise WrongPortal("Only doctors have profiles")
        return caller

    async def update_profile(self, credentials: Credentials, changes: dict[str, Any]) -> Account:
        """Apply a profile change, switching credential mode when asked."""
        self.calls.append("update_profile")
        caller = self._authenticate(credentials)
        if caller.role != Role.DOCTOR:
            raise WrongPortal("Only doctors have profiles")

        async with self._lock:
            stored = self._accounts[caller.id]
            current = stored.account
            update: dict[str, Any] = {"updated_at": datetime.now(UTC)}

            email = changes.get("email", current.email)
            if "email" in changes and email and email != current.email:
                if self._find(lambda a: a.email == email and a.id != current.id):
                    raise ValidationFailed(
                        "Email already exists", fields={"email": "Email already exists"}
                    )
                update["email"] = email
            if "cityId" in changes:
                update["city_id"] = changes["cityId"]

            wants_password = changes.get("requirePassword", current.require_password)
            if wants_password and not email:
                raise ValidationFailed(
                    "Email is required", fields={"email": "Email is required for password login"}
                )

            if wants_password != current.require_password:
                update["require_password"] = wants_password
                if wants_password:
                    if not changes.get("password"):
                        raise ValidationFailed(
                            "Password is required",
                            fields={"password": "Password is required for password login"},
                        )
                    # The link token stays stored but dormant; resolution refuses it.
                    stored.password_hash = _hash_password(changes["password"])
                else:
                    stored.password_hash = None
                    update["link_token"] = _new_link_token()
            elif changes.get("password"):
                if not wants_password:
                    raise ValidationFailed(
                        "Password not allowed",
                        fields={"password": "Password can only be set for password login"},
                    )
                stored.password_hash = _hash_password(changes["password"])

            stored.account = current.model_copy(update=update)
            return stored.account

    def _find(self, predicate: Any) -> _StoredAccount | None:
        for stored in self._accounts.values():
            if predicate(stored.account):
                return stored
        return None

    def _doctor(self, account_id: str) -> _StoredAccount:
        stored = self._accounts.get(account_id)
        if stored is None or stored.account.role != Role.DOCTOR:
            raise ValidationFailed("Account not found", fields={"id": "Account not found"})
        return stored

    def _authenticate(self, credentials: Credentials) -> Account:
        """Identify the caller the way the remote API does: bearer first."""
        if credentials.session_token:
            try:
                payload = jwt.decode(
                    credentials.session_token,
                    self._secret,
                    algorithms=[token_codec.ALGORITHM],
                )
            except jwt.PyJWTError:
                raise InvalidToken() from None
            stored = self._accounts.get(str(payload.get("sub")))
            if stored is None:
                raise InvalidToken()
            return stored.account

        if credentials.link_token:
            stored = self._find(
                lambda a: a.link_token is not None and a.link_token == credentials.link_token
            )
            if stored is None:
                raise InvalidToken()
            check_link_eligibility(stored.account)
            return stored.account

        raise Unauthorized()

    def _require_admin(self, caller: Account) -> None:
        if caller.role != Role.ADMIN:
            raise WrongPortal("Admin access required")
