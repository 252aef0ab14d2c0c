"""Per-navigation portal access decisions.

The guard is a pure function of (session cookie, link token, portal) to a
GuardDecision. It holds no state between requests; everything it knows comes
from the credentials the visitor presents and, for link tokens, from the
remote API via the link resolver.

State machine:

    anonymous --cookie with portal role--> session_authenticated
    anonymous --cookie with other role---> denied(wrong_portal)
    anonymous --undecodable cookie-------> denied(invalid_token)
    anonymous --link token---------------> link_pending
    link_pending --resolved--------------> link_authenticated
    link_pending --rejected--------------> denied(<resolver reason>)
"""

from dataclasses import dataclass
from enum import Enum
from urllib.parse import urlencode

import structlog

from joymed.core.auth import jwt
from joymed.core.auth.link import LinkIdentityResolver
from joymed.core.auth.types import Account, Role, TokenClaims
from joymed.core.exceptions import AuthError, RejectionReason

logger = structlog.get_logger()


class GuardState(str, Enum):
    """Where a visitor stands for the current navigation."""

    ANONYMOUS = "anonymous"
    SESSION_AUTHENTICATED = "session_authenticated"
    LINK_PENDING = "link_pending"
    LINK_AUTHENTICATED = "link_authenticated"
    DENIED = "denied"


@dataclass(frozen=True)
class Portal:
    """Static description of one front-end and the role it admits."""

    name: str
    role: Role
    home_path: str
    login_path: str = "/login"
    # Error code shown when a credential for the other portal turns up.
    wrong_role_error: str = RejectionReason.WRONG_PORTAL.value
    accepts_link_tokens: bool = False
    requires_login: bool = True

    def login_url(self, error: str | None = None) -> str:
        """Login page URL, optionally carrying an error code."""
        if not error:
            return self.login_path
        return f"{self.login_path}?{urlencode({'error': error})}"


ADMIN_PORTAL = Portal(
    name="admin",
    role=Role.ADMIN,
    home_path="/dashboard",
    wrong_role_error=RejectionReason.WRONG_PORTAL.value,
)

DOCTOR_PORTAL = Portal(
    name="doctor",
    role=Role.DOCTOR,
    home_path="/",
    wrong_role_error="admin_detected",
    accepts_link_tokens=True,
    requires_login=False,
)


@dataclass(frozen=True)
class GuardDecision:
    """Outcome of a guard evaluation."""

    state: GuardState
    reason: RejectionReason | None = None
    claims: TokenClaims | None = None
    account: Account | None = None
    redirect_to: str | None = None

    @property
    def is_authenticated(self) -> bool:
        """True for session or link authenticated visitors."""
        return self.state in (GuardState.SESSION_AUTHENTICATED, GuardState.LINK_AUTHENTICATED)


class PortalGuard:
    """Decides whether a visitor may see a portal page."""

    def __init__(self, portal: Portal, resolver: LinkIdentityResolver) -> None:
        """Initialize the guard.

        Args:
            portal: Portal this guard protects.
            resolver: Resolver for link tokens.
        """
        self.portal = portal
        self._resolver = resolver

    def check_session(self, session_token: str) -> GuardDecision:
        """Classify a presented session cookie for this portal."""
        claims = jwt.decode(session_token)
        if claims is None:
            return self._deny(RejectionReason.INVALID_TOKEN)

        match claims.role:
            case self.portal.role:
                return GuardDecision(GuardState.SESSION_AUTHENTICATED, claims=claims)
            case Role.ADMIN | Role.DOCTOR:
                return self._deny(
                    RejectionReason.WRONG_PORTAL,
                    claims=claims,
                    error=self.portal.wrong_role_error,
                )

    async def check_page(
        self,
        session_token: str | None,
        link_token: str | None = None,
    ) -> GuardDecision:
        """Evaluate a protected page navigation.

        A session cookie always takes precedence over a link token. A cookie
        for the wrong role or one that fails to decode is denied explicitly
        rather than treated as anonymous.

        Args:
            session_token: Value of the session cookie, if any.
            link_token: Link token from the query string, if any.

        Returns:
            The decision, with a redirect target when the visitor must leave.

        Raises:
            RemoteUnavailable: Link resolution could not reach the remote API.
        """
        if session_token:
            return self.check_session(session_token)

        if link_token and self.portal.accepts_link_tokens:
            return await self._check_link(link_token)

        redirect_to = self.portal.login_url() if self.portal.requires_login else None
        return GuardDecision(GuardState.ANONYMOUS, redirect_to=redirect_to)

    def check_login_page(
        self,
        session_token: str | None,
        current_error: str | None = None,
    ) -> GuardDecision:
        """Evaluate a visit to the portal login page.

        Authenticated visitors are sent forward to the portal home. Holders of
        the other portal's credential are sent back to the login page with an
        explanation, unless that explanation is already being shown.

        Args:
            session_token: Value of the session cookie, if any.
            current_error: Error code already present on the login URL.

        Returns:
            The decision; no redirect means the login form should render.
        """
        if not session_token:
            return GuardDecision(GuardState.ANONYMOUS)

        decision = self.check_session(session_token)
        if decision.state == GuardState.SESSION_AUTHENTICATED:
            return GuardDecision(
                decision.state,
                claims=decision.claims,
                redirect_to=self.portal.home_path,
            )

        error = self._error_code(decision.reason)
        redirect_to = None if current_error == error else decision.redirect_to
        return GuardDecision(
            decision.state,
            reason=decision.reason,
            claims=decision.claims,
            redirect_to=redirect_to,
        )

    async def _check_link(self, link_token: str) -> GuardDecision:
        logger.debug("portal_guard_state", portal=self.portal.name, state=GuardState.LINK_PENDING)
        try:
            account = await self._resolver.resolve(link_token)
        except AuthError as e:
            return self._deny(e.reason)

        return GuardDecision(GuardState.LINK_AUTHENTICATED, account=account)

    def _error_code(self, reason: RejectionReason | None) -> str:
        if reason == RejectionReason.WRONG_PORTAL:
            return self.portal.wrong_role_error
        return (reason or RejectionReason.UNAUTHORIZED).value

    def _deny(
        self,
        reason: RejectionReason,
        claims: TokenClaims | None = None,
        error: str | None = None,
    ) -> GuardDecision:
        logger.info("portal_access_denied", portal=self.portal.name, reason=reason.value)
        return GuardDecision(
            GuardState.DENIED,
            reason=reason,
            claims=claims,
            redirect_to=self.portal.login_url(error or reason.value),
        )
