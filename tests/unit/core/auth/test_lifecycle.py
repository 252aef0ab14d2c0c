"""Tests for the account lifecycle manager."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from joymed.adapters.auth import InMemoryAccountGateway
from joymed.core.auth.context import AuthContext
from joymed.core.auth.lifecycle import (
    AccountLifecycleManager,
    PreregistrationRequest,
    ProfileUpdate,
    parse_request,
)
from joymed.core.auth.link import LinkIdentityResolver
from joymed.core.auth.login import SessionLoginFlow
from joymed.core.auth.types import (
    Account,
    AccountStatus,
    CredentialMode,
    Credentials,
    Role,
)
from joymed.core.exceptions import (
    AccountPending,
    Forbidden,
    InvalidToken,
    PasswordRequired,
    ValidationFailed,
    WrongPortal,
)


def _session(account: Account, token: str) -> AuthContext:
    return AuthContext(
        subject_id=account.id,
        role=account.role,
        mode=CredentialMode.SESSION,
        credentials=Credentials(session_token=token),
    )


def _link(account: Account) -> AuthContext:
    return AuthContext(
        subject_id=account.id,
        role=account.role,
        mode=CredentialMode.LINK,
        credentials=Credentials(link_token=account.link_token),
        account=account,
    )


@pytest.fixture
def admin(admin_account: Account, admin_token: str) -> AuthContext:
    """Return the admin's request identity."""
    return _session(admin_account, admin_token)


@pytest.fixture
def manager(gateway: InMemoryAccountGateway) -> AccountLifecycleManager:
    """Return a manager over the in-memory gateway."""
    return AccountLifecycleManager(gateway)


class TestParseRequest:
    """Tests for parse_request."""

    def test_valid_registration(self) -> None:
        """Should accept camelCase input and strip the ICP number."""
        request = parse_request(
            PreregistrationRequest, {"icpNumber": " 123 ", "cityId": 4}
        )

        assert request.icp_number == "123"
        assert request.city_id == 4
        assert request.require_password is False

    def test_field_errors(self) -> None:
        """Should report every offending field by its wire name."""
        with pytest.raises(ValidationFailed) as exc_info:
            parse_request(PreregistrationRequest, {"icpNumber": "  ", "cityId": 0})

        assert set(exc_info.value.fields) == {"icpNumber", "cityId"}

    def test_short_password(self) -> None:
        """Should enforce the minimum password length."""
        with pytest.raises(ValidationFailed) as exc_info:
            parse_request(ProfileUpdate, {"password": "short"})

        assert "password" in exc_info.value.fields

    def test_invalid_email(self) -> None:
        """Should reject malformed email addresses."""
        with pytest.raises(ValidationFailed) as exc_info:
            parse_request(ProfileUpdate, {"email": "not-an-email"})

        assert "email" in exc_info.value.fields


class TestPreregister:
    """Tests for AccountLifecycleManager.preregister."""

    async def test_link_mode_registration(self, manager: AccountLifecycleManager) -> None:
        """Should create a pending account with a link token."""
        account = await manager.preregister(
            PreregistrationRequest(icp_number="30000001", city_id=1)
        )

        assert account.status == AccountStatus.PENDING
        assert account.role == Role.DOCTOR
        assert account.require_password is False
        assert account.link_token

    async def test_password_mode_requires_email_and_password(
        self, manager: AccountLifecycleManager
    ) -> None:
        """Should demand both fields when requirePassword is true."""
        with pytest.raises(ValidationFailed) as exc_info:
            await manager.preregister(
                PreregistrationRequest(icp_number="30000001", city_id=1, require_password=True)
            )

        assert set(exc_info.value.fields) == {"email", "password"}

    async def test_password_dropped_in_link_mode(self) -> None:
        """Should not forward a password for link-mode registrations."""
        mock_gateway = MagicMock()
        mock_gateway.preregister = AsyncMock(
            return_value=Account(id="new", role=Role.DOCTOR)
        )

        await AccountLifecycleManager(mock_gateway).preregister(
            PreregistrationRequest(
                icp_number="30000001",
                city_id=1,
                email="x@example.com",
                password="long-enough",  # pragma: allowlist secret
            )
        )

        payload = mock_gateway.preregister.await_args.args[0]
        assert "password" not in payload
        assert payload["icpNumber"] == "30000001"
        assert payload["cityId"] == 1

    async def test_duplicate_icp_number(
        self, manager: AccountLifecycleManager, link_doctor: Account
    ) -> None:
        """Should surface the duplicate as a field error."""
        with pytest.raises(ValidationFailed) as exc_info:
            await manager.preregister(
                PreregistrationRequest(icp_number=link_doctor.icp_number or "", city_id=1)
            )

        assert "icpNumber" in exc_info.value.fields


class TestValidate:
    """Tests for AccountLifecycleManager.validate."""

    async def test_registration_to_link_access(
        self,
        gateway: InMemoryAccountGateway,
        manager: AccountLifecycleManager,
        admin: AuthContext,
    ) -> None:
        """Should refuse the link while pending and accept it once approved."""
        account = await manager.preregister(
            PreregistrationRequest(icp_number="30000002", city_id=1)
        )
        resolver = LinkIdentityResolver(gateway)

        with pytest.raises(AccountPending):
            await resolver.resolve(account.link_token)

        approved = await manager.validate(admin, account.id, AccountStatus.APPROVED)

        assert approved.status == AccountStatus.APPROVED
        assert (await resolver.resolve(account.link_token)).id == account.id

    async def test_doctor_cannot_validate(
        self,
        manager: AccountLifecycleManager,
        password_doctor: Account,
        doctor_token: str,
        pending_doctor: Account,
    ) -> None:
        """Should be admin only."""
        with pytest.raises(WrongPortal):
            await manager.validate(
                _session(password_doctor, doctor_token),
                pending_doctor.id,
                AccountStatus.APPROVED,
            )

    async def test_pending_is_not_a_decision(
        self, manager: AccountLifecycleManager, admin: AuthContext, pending_doctor: Account
    ) -> None:
        """Should only accept approved or rejected."""
        with pytest.raises(ValidationFailed):
            await manager.validate(admin, pending_doctor.id, AccountStatus.PENDING)

    async def test_rejected_cannot_be_reapproved(
        self, manager: AccountLifecycleManager, admin: AuthContext, rejected_doctor: Account
    ) -> None:
        """Should refuse to re-validate a decided account."""
        with pytest.raises(ValidationFailed):
            await manager.validate(admin, rejected_doctor.id, AccountStatus.APPROVED)


class TestRegenerateLinkToken:
    """Tests for AccountLifecycleManager.regenerate_link_token."""

    async def test_admin_regenerates(
        self, manager: AccountLifecycleManager, admin: AuthContext, link_doctor: Account
    ) -> None:
        """Should mint a different token."""
        updated = await manager.regenerate_link_token(admin, link_doctor.id)

        assert updated.link_token
        assert updated.link_token != link_doctor.link_token

    async def test_doctor_regenerates_own(
        self, manager: AccountLifecycleManager, link_doctor: Account
    ) -> None:
        """Should let a doctor replace their own token."""
        updated = await manager.regenerate_link_token(_link(link_doctor), link_doctor.id)

        assert updated.link_token != link_doctor.link_token

    async def test_doctor_cannot_touch_others(
        self, manager: AccountLifecycleManager, link_doctor: Account, pending_doctor: Account
    ) -> None:
        """Should refuse a doctor acting on someone else's account."""
        with pytest.raises(Forbidden):
            await manager.regenerate_link_token(_link(link_doctor), pending_doctor.id)

    async def test_password_mode_account(
        self, manager: AccountLifecycleManager, admin: AuthContext, password_doctor: Account
    ) -> None:
        """Should refuse accounts that have no link access."""
        with pytest.raises(ValidationFailed):
            await manager.regenerate_link_token(admin, password_doctor.id)

    async def test_two_regenerations_in_a_row(
        self,
        gateway: InMemoryAccountGateway,
        manager: AccountLifecycleManager,
        link_doctor: Account,
    ) -> None:
        """Should retire every token but the last."""
        actor = _link(link_doctor)
        first = await manager.regenerate_link_token(actor, link_doctor.id)
        second = await manager.regenerate_link_token(_link(first), link_doctor.id)
        resolver = LinkIdentityResolver(gateway)

        for stale in (link_doctor.link_token, first.link_token):
            with pytest.raises(InvalidToken):
                await resolver.resolve(stale)
        assert (await resolver.resolve(second.link_token)).id == link_doctor.id

    async def test_resolution_racing_regeneration(
        self,
        gateway: InMemoryAccountGateway,
        manager: AccountLifecycleManager,
        admin: AuthContext,
        link_doctor: Account,
    ) -> None:
        """Should see the old token as valid or invalid, and never afterwards."""
        resolver = LinkIdentityResolver(gateway)

        outcome, updated = await asyncio.gather(
            resolver.resolve(link_doctor.link_token),
            manager.regenerate_link_token(admin, link_doctor.id),
            return_exceptions=True,
        )

        assert isinstance(updated, Account)
        assert isinstance(outcome, Account | InvalidToken)
        with pytest.raises(InvalidToken):
            await resolver.resolve(link_doctor.link_token)
        assert (await resolver.resolve(updated.link_token)).id == link_doctor.id

    async def test_concurrent_regenerations(
        self,
        gateway: InMemoryAccountGateway,
        manager: AccountLifecycleManager,
        admin: AuthContext,
        link_doctor: Account,
    ) -> None:
        """Should leave exactly one working token after racing regenerations."""
        results = await asyncio.gather(
            *(manager.regenerate_link_token(admin, link_doctor.id) for _ in range(5))
        )
        stored = gateway.get(link_doctor.id)
        assert stored is not None

        resolver = LinkIdentityResolver(gateway)
        tokens = {r.link_token for r in results} | {link_doctor.link_token}
        working = []
        for token in tokens:
            try:
                await resolver.resolve(token)
                working.append(token)
            except InvalidToken:
                pass

        assert working == [stored.link_token]


class TestUpdateProfile:
    """Tests for AccountLifecycleManager.update_profile."""

    async def test_switch_to_password_mode(
        self,
        gateway: InMemoryAccountGateway,
        manager: AccountLifecycleManager,
        link_doctor: Account,
    ) -> None:
        """Should disable link access and enable password login."""
        updated = await manager.update_profile(
            _link(link_doctor),
            ProfileUpdate(
                email="switch@example.com",
                require_password=True,
                password="brand-new-password",  # pragma: allowlist secret
            ),
        )

        assert updated.require_password is True
        with pytest.raises(PasswordRequired):
            await LinkIdentityResolver(gateway).resolve(link_doctor.link_token)

        result = await SessionLoginFlow(gateway).login(
            "switch@example.com",
            "brand-new-password",  # pragma: allowlist secret
            Role.DOCTOR,
        )
        assert result.claims.subject_id == link_doctor.id

    async def test_switch_back_to_link_mode(
        self,
        gateway: InMemoryAccountGateway,
        manager: AccountLifecycleManager,
        password_doctor: Account,
        doctor_token: str,
    ) -> None:
        """Should mint a fresh link token that resolves."""
        updated = await manager.update_profile(
            _session(password_doctor, doctor_token),
            ProfileUpdate(require_password=False),
        )

        assert updated.require_password is False
        assert updated.link_token
        assert (await LinkIdentityResolver(gateway).resolve(updated.link_token)).id == (
            password_doctor.id
        )

    async def test_enabling_password_needs_password(
        self, manager: AccountLifecycleManager, link_doctor: Account
    ) -> None:
        """Should refuse password mode without a password."""
        with pytest.raises(ValidationFailed) as exc_info:
            await manager.update_profile(
                _link(link_doctor), ProfileUpdate(require_password=True)
            )

        assert set(exc_info.value.fields) == {"password", "email"}

    async def test_password_without_password_mode(
        self, manager: AccountLifecycleManager, link_doctor: Account
    ) -> None:
        """Should refuse a password while turning password mode off."""
        with pytest.raises(ValidationFailed):
            await manager.update_profile(
                _link(link_doctor),
                ProfileUpdate(
                    require_password=False,
                    password="long-enough",  # pragma: allowlist secret
                ),
            )

    async def test_sends_only_set_fields(self) -> None:
        """Should forward only the fields the caller set."""
        account = Account(id="d", role=Role.DOCTOR)
        mock_gateway = MagicMock()
        mock_gateway.update_profile = AsyncMock(return_value=account)
        actor = AuthContext(
            subject_id="d",
            role=Role.DOCTOR,
            mode=CredentialMode.SESSION,
            credentials=Credentials(session_token="t"),
        )

        await AccountLifecycleManager(mock_gateway).update_profile(
            actor, ProfileUpdate(city_id=7)
        )

        mock_gateway.update_profile.assert_awaited_once_with(actor.credentials, {"cityId": 7})

    async def test_admin_has_no_profile(
        self, manager: AccountLifecycleManager, admin: AuthContext
    ) -> None:
        """Should refuse admins."""
        with pytest.raises(WrongPortal):
            await manager.update_profile(admin, ProfileUpdate(city_id=2))
        with pytest.raises(WrongPortal):
            await manager.get_profile(admin)


class TestQueries:
    """Tests for profile, pending list and ICP lookup."""

    async def test_list_pending(
        self,
        manager: AccountLifecycleManager,
        admin: AuthContext,
        pending_doctor: Account,
        link_doctor: Account,
    ) -> None:
        """Should list only pending accounts."""
        pending = await manager.list_pending(admin)

        assert [a.id for a in pending] == [pending_doctor.id]

    async def test_get_profile_by_link(
        self, manager: AccountLifecycleManager, link_doctor: Account
    ) -> None:
        """Should return the caller's own account."""
        profile = await manager.get_profile(_link(link_doctor))

        assert profile.id == link_doctor.id

    async def test_identify_by_icp(
        self, manager: AccountLifecycleManager, link_doctor: Account
    ) -> None:
        """Should find the account without exposing its link token."""
        account = await manager.identify_by_icp(" 20000002 ")

        assert account.id == link_doctor.id
        assert account.link_token is None

    async def test_identify_blank_icp(self, manager: AccountLifecycleManager) -> None:
        """Should refuse a blank number locally."""
        with pytest.raises(ValidationFailed):
            await manager.identify_by_icp("   ")
