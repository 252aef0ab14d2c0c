"""Auth domain types and services."""

from joymed.core.auth.context import AuthContext, AuthContextBuilder
from joymed.core.auth.gateway import AccountGateway
from joymed.core.auth.guard import (
    ADMIN_PORTAL,
    DOCTOR_PORTAL,
    GuardDecision,
    GuardState,
    Portal,
    PortalGuard,
)
from joymed.core.auth.jwt import decode, encode, is_role
from joymed.core.auth.lifecycle import (
    AccountLifecycleManager,
    PreregistrationRequest,
    ProfileUpdate,
)
from joymed.core.auth.link import LinkIdentityResolver
from joymed.core.auth.login import SessionLoginFlow
from joymed.core.auth.types import (
    Account,
    AccountStatus,
    CredentialMode,
    Credentials,
    LoginResult,
    Role,
    TokenClaims,
)

__all__ = [
    "Account",
    "AccountStatus",
    "Role",
    "CredentialMode",
    "Credentials",
    "TokenClaims",
    "LoginResult",
    "decode",
    "encode",
    "is_role",
    "AccountGateway",
    "LinkIdentityResolver",
    "SessionLoginFlow",
    "Portal",
    "ADMIN_PORTAL",
    "DOCTOR_PORTAL",
    "GuardState",
    "GuardDecision",
    "PortalGuard",
    "AccountLifecycleManager",
    "PreregistrationRequest",
    "ProfileUpdate",
    "AuthContext",
    "AuthContextBuilder",
]
