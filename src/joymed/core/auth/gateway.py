"""Account gateway protocol for the remote system of record."""

from typing import Any, Protocol, runtime_checkable

from joymed.core.auth.types import Account, AccountStatus, Credentials


@runtime_checkable
class AccountGateway(Protocol):
    """Protocol for account operations against the remote API.

    Implementations own transport and error mapping: network failures raise
    RemoteUnavailable, input problems raise ValidationFailed, and credential
    problems raise the matching AuthError subclass. The remote side enforces
    approval, password-mode and token-uniqueness invariants.
    """

    async def login(self, email: str, password: str) -> tuple[str, Account | None]:
        """Authenticate and return the issued session credential."""
        ...

    async def identify_by_token(self, token: str) -> Account:
        """Resolve a unique link token to its account."""
        ...

    async def identify_by_icp(self, icp_number: str) -> Account:
        """Look up an account projection by professional license number."""
        ...

    async def preregister(self, payload: dict[str, Any]) -> Account:
        """Create a pending account."""
        ...

    async def validate_account(
        self,
        credentials: Credentials,
        account_id: str,
        status: AccountStatus,
    ) -> Account:
        """Approve or reject a pending account."""
        ...

    async def regenerate_link_token(self, credentials: Credentials, account_id: str) -> Account:
        """Replace an account's link token."""
        ...

    async def list_pending(self, credentials: Credentials) -> list[Account]:
        """List accounts awaiting approval."""
        ...

    async def get_profile(self, credentials: Credentials) -> Account:
        """Fetch the caller's own account."""
        ...

    async def update_profile(self, credentials: Credentials, changes: dict[str, Any]) -> Account:
        """Update the caller's own account."""
        ...
