"""Email/password login bound to a portal role."""

import structlog

from joymed.core.auth import jwt
from joymed.core.auth.gateway import AccountGateway
from joymed.core.auth.types import AccountStatus, LoginResult, Role
from joymed.core.exceptions import AccountPending, AccountRejected, InvalidToken, WrongPortal

logger = structlog.get_logger()


class SessionLoginFlow:
    """Exchanges email/password for a session credential for one portal."""

    def __init__(self, gateway: AccountGateway) -> None:
        """Initialize with the account gateway.

        Args:
            gateway: Gateway to the remote account API.
        """
        self._gateway = gateway

    async def login(self, email: str, password: str, required_role: Role) -> LoginResult:
        """Authenticate and accept the credential only for the required role.

        The remote API checks the password; approval is checked here against
        the account projection returned with the credential. A credential for
        the other role is valid cryptographically but is discarded here and
        must never be persisted by the rejecting portal.

        Args:
            email: Account email.
            password: Plain text password.
            required_role: Role the calling portal admits.

        Returns:
            The accepted credential with its claims.

        Raises:
            InvalidCredentials: Remote refused the email/password pair.
            AccountPending: Account awaits approval.
            AccountRejected: Account was rejected.
            InvalidToken: Remote returned a credential that does not decode.
            WrongPortal: Credential role differs from required_role.
            RemoteUnavailable: Remote API unreachable.
        """
        token, account = await self._gateway.login(email, password)

        claims = jwt.decode(token)
        if claims is None:
            logger.warning("portal_login_rejected", reason="undecodable_token")
            raise InvalidToken("Login returned an unreadable credential")

        if claims.role != required_role:
            logger.info(
                "portal_login_rejected",
                reason=WrongPortal.reason.value,
                account_id=claims.subject_id,
                role=claims.role.value,
                required_role=required_role.value,
            )
            raise WrongPortal(
                f"This portal is for {required_role.value} accounts only"
            )

        if account is not None and account.status != AccountStatus.APPROVED:
            logger.info(
                "portal_login_rejected",
                reason=account.status.value,
                account_id=claims.subject_id,
            )
            if account.status == AccountStatus.REJECTED:
                raise AccountRejected()
            raise AccountPending()

        logger.info("portal_login_accepted", account_id=claims.subject_id, role=claims.role.value)
        return LoginResult(token=token, claims=claims, account=account)
