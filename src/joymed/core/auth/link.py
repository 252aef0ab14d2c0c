"""Unique link token resolution."""

import structlog

from joymed.core.auth.gateway import AccountGateway
from joymed.core.auth.types import Account, AccountStatus
from joymed.core.exceptions import (
    AccountPending,
    AccountRejected,
    AuthError,
    InvalidToken,
    PasswordRequired,
)

logger = structlog.get_logger()

LINK_REJECTIONS = (AccountPending, AccountRejected, PasswordRequired, InvalidToken)


def check_link_eligibility(account: Account) -> None:
    """Raise if an account may not be identified by its link token.

    Checked in priority order: pending, rejected, password mode. A stored
    token on a password-mode account is dormant and never accepted.

    Raises:
        AccountPending: Account awaits approval.
        AccountRejected: Account was rejected.
        PasswordRequired: Account currently requires password login.
    """
    if account.status == AccountStatus.PENDING:
        raise AccountPending()
    if account.status == AccountStatus.REJECTED:
        raise AccountRejected()
    if account.require_password:
        raise PasswordRequired()


class LinkIdentityResolver:
    """Resolves opaque link tokens to approved, link-mode accounts."""

    def __init__(self, gateway: AccountGateway) -> None:
        """Initialize with the account gateway.

        Args:
            gateway: Gateway to the remote account API.
        """
        self._gateway = gateway

    async def resolve(self, link_token: str | None) -> Account:
        """Resolve a link token to its account.

        The remote API enforces approval and password mode; the returned
        projection is checked again so a lenient or stale remote answer
        can never let a non-approved account through.

        Args:
            link_token: Token taken from the query string or header.

        Returns:
            The approved link-mode account.

        Raises:
            InvalidToken: Token missing, unknown or superseded.
            AccountPending: Account awaits approval.
            AccountRejected: Account was rejected.
            PasswordRequired: Account requires password login.
            RemoteUnavailable: Remote API unreachable.
        """
        token = (link_token or "").strip()
        if not token:
            raise InvalidToken("Link token is empty")

        try:
            account = await self._gateway.identify_by_token(token)
            check_link_eligibility(account)
        except LINK_REJECTIONS as e:
            logger.info("link_token_rejected", reason=e.code)
            raise
        except AuthError as e:
            # Anything else collapses so token existence never leaks.
            logger.info("link_token_rejected", reason=InvalidToken.reason.value, remote=e.code)
            raise InvalidToken() from None

        if account.link_token and account.link_token != token:
            # The remote answered with a newer token than the one presented.
            logger.info("link_token_rejected", reason="superseded", account_id=account.id)
            raise InvalidToken()

        logger.debug("link_token_resolved", account_id=account.id)
        return account
