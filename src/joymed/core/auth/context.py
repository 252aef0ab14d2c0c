"""Unified request identity for resource handlers.

Answers "who is making this request", not "may this request reach this
portal"; portal selection is the PortalGuard's job.
"""

from dataclasses import dataclass

import structlog

from joymed.core.auth import jwt
from joymed.core.auth.link import LinkIdentityResolver
from joymed.core.auth.types import Account, CredentialMode, Credentials, Role
from joymed.core.exceptions import InvalidToken, Unauthorized

logger = structlog.get_logger()


@dataclass(frozen=True)
class AuthContext:
    """Resolved identity of the caller.

    Attributes:
        subject_id: Account identifier.
        role: Account role.
        mode: Which credential established the identity.
        credentials: Everything the caller presented, for forwarding.
        account: Resolved account, available in link mode.
    """

    subject_id: str
    role: Role
    mode: CredentialMode
    credentials: Credentials
    account: Account | None = None

    @property
    def is_admin(self) -> bool:
        """Whether the caller holds the admin role."""
        return self.role == Role.ADMIN


class AuthContextBuilder:
    """Merges cookie and link credentials into one identity."""

    def __init__(self, resolver: LinkIdentityResolver) -> None:
        """Initialize with the link resolver.

        Args:
            resolver: Resolver used when only a link token is present.
        """
        self._resolver = resolver

    async def build(
        self,
        session_token: str | None = None,
        link_token: str | None = None,
    ) -> AuthContext:
        """Build the caller identity.

        A session credential wins when both are present; the link token is
        still kept in the forwarded credentials so the remote API can apply
        whichever is valid.

        Args:
            session_token: Session cookie value.
            link_token: Link token from query string or x-link-token header.

        Returns:
            Resolved AuthContext.

        Raises:
            Unauthorized: Neither credential was presented.
            InvalidToken: Session credential does not decode, or link token
                is unknown/superseded.
            AccountPending, AccountRejected, PasswordRequired: Link token
                belongs to an ineligible account.
            RemoteUnavailable: Remote API unreachable.
        """
        credentials = Credentials(
            session_token=session_token or None,
            link_token=link_token or None,
        )

        if credentials.session_token:
            claims = jwt.decode(credentials.session_token)
            if claims is None:
                raise InvalidToken("Session credential could not be decoded")
            return AuthContext(
                subject_id=claims.subject_id,
                role=claims.role,
                mode=CredentialMode.SESSION,
                credentials=credentials,
            )

        if credentials.link_token:
            account = await self._resolver.resolve(credentials.link_token)
            return AuthContext(
                subject_id=account.id,
                role=account.role,
                mode=CredentialMode.LINK,
                credentials=credentials,
                account=account,
            )

        raise Unauthorized("Provide a session cookie or a link token")
