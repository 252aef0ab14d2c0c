"""Domain-specific exceptions.

All exceptions in the joymed system inherit from JoymedError, making it easy
to catch every portal error while still being able to handle specific
error types.

Credential failures derive from AuthError and carry a RejectionReason code.
The code is what reaches the visitor, either as a ``?error=<code>`` redirect
on pages or as ``detail.code`` on API responses.
"""

from __future__ import annotations

from enum import Enum


class RejectionReason(str, Enum):
    """Machine-readable reasons a credential or request was rejected."""

    UNAUTHORIZED = "unauthorized"
    INVALID_TOKEN = "invalid_token"
    INVALID_CREDENTIALS = "invalid_credentials"
    ACCOUNT_PENDING = "account_pending"
    ACCOUNT_REJECTED = "account_rejected"
    PASSWORD_REQUIRED = "password_required"
    WRONG_PORTAL = "wrong_portal"
    FORBIDDEN = "forbidden"


class JoymedError(Exception):
    """Base exception for all joymed errors."""

    pass


class AuthError(JoymedError):
    """A credential could not be turned into an accepted identity.

    Subclasses pin the reason; the message is for logs and API consumers,
    the reason is what the UI layer renders.
    """

    reason: RejectionReason = RejectionReason.UNAUTHORIZED
    default_message = "Authentication required"

    def __init__(self, message: str | None = None) -> None:
        """Initialize AuthError.

        Args:
            message: Optional human-readable detail.
        """
        super().__init__(message or self.default_message)

    @property
    def code(self) -> str:
        """Rejection code as sent to clients."""
        return self.reason.value


class Unauthorized(AuthError):
    """No credential was presented at all."""

    reason = RejectionReason.UNAUTHORIZED
    default_message = "Authentication required"


class InvalidToken(AuthError):
    """A credential was presented but cannot be resolved.

    Covers tokens that never existed and tokens superseded by
    regeneration alike, so callers cannot probe for account existence.
    """

    reason = RejectionReason.INVALID_TOKEN
    default_message = "Invalid or expired token"


class InvalidCredentials(AuthError):
    """Email/password pair was refused by the remote API."""

    reason = RejectionReason.INVALID_CREDENTIALS
    default_message = "Invalid email or password"


class AccountPending(AuthError):
    """Account is still waiting for admin approval."""

    reason = RejectionReason.ACCOUNT_PENDING
    default_message = "Account is awaiting approval"


class AccountRejected(AuthError):
    """Account registration was rejected by an admin."""

    reason = RejectionReason.ACCOUNT_REJECTED
    default_message = "Account registration was rejected"


class PasswordRequired(AuthError):
    """Account requires password login; link access is disabled."""

    reason = RejectionReason.PASSWORD_REQUIRED
    default_message = "This account requires password login"


class WrongPortal(AuthError):
    """Credential role does not match the portal or operation."""

    reason = RejectionReason.WRONG_PORTAL
    default_message = "This credential belongs to a different portal"


class Forbidden(AuthError):
    """Identity is known but may not act on the target account."""

    reason = RejectionReason.FORBIDDEN
    default_message = "Not allowed to modify this account"


class ValidationFailed(JoymedError):
    """Request input was rejected, locally or by the remote API.

    Attributes:
        fields: Map of offending field name to message.
    """

    def __init__(self, message: str, fields: dict[str, str] | None = None) -> None:
        """Initialize ValidationFailed.

        Args:
            message: Summary of the failure.
            fields: Field-level messages keyed by field name.
        """
        super().__init__(message)
        self.fields = fields or {}


class RemoteUnavailable(JoymedError):
    """The remote API could not be reached or answered unexpectedly.

    Never retried automatically; the caller may try again.
    """

    pass
