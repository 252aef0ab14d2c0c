"""Auth domain types."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Role(str, Enum):
    """Account roles. Each portal admits exactly one."""

    ADMIN = "admin"
    DOCTOR = "doctor"

    @classmethod
    def _missing_(cls, value: object) -> Role | None:
        # The remote API historically labels doctors as plain "user".
        if value == "user":
            return cls.DOCTOR
        return None


class AccountStatus(str, Enum):
    """Approval state of an account."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class CredentialMode(str, Enum):
    """How the current request proved its identity."""

    SESSION = "session"
    LINK = "link"


class Account(BaseModel):
    """Account projection as returned by the remote API.

    Only lives for the duration of a request; the remote system owns it.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    role: Role
    email: str | None = None
    icp_number: str | None = None
    city_id: int | None = None
    city_name: str | None = None
    require_password: bool = False
    link_token: str | None = Field(
        default=None,
        validation_alias=AliasChoices("linkToken", "uniqueLinkToken", "link_token"),
    )
    status: AccountStatus = AccountStatus.PENDING
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_approved(self) -> bool:
        """Whether the account passed admin validation."""
        return self.status == AccountStatus.APPROVED


@dataclass(frozen=True)
class TokenClaims:
    """Claims read out of a session credential.

    Never trusted for privileged work; only used to route the visitor.
    """

    subject_id: str
    role: Role
    email: str | None = None


@dataclass(frozen=True)
class Credentials:
    """Raw credentials a request carried, forwarded as-is to the remote API."""

    session_token: str | None = None
    link_token: str | None = None

    @property
    def is_empty(self) -> bool:
        """True when neither credential is present."""
        return not self.session_token and not self.link_token

    def headers(self) -> dict[str, str]:
        """Build the headers the remote API expects for these credentials."""
        headers: dict[str, str] = {}
        if self.session_token:
            headers["Authorization"] = f"Bearer {self.session_token}"
        if self.link_token:
            headers["x-link-token"] = self.link_token
        return headers


@dataclass(frozen=True)
class LoginResult:
    """Outcome of a successful email/password login."""

    token: str
    claims: TokenClaims
    account: Account | None = None
