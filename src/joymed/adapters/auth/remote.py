"""HTTP gateway to the remote account API."""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from joymed.core.auth.types import Account, AccountStatus, Credentials
from joymed.core.exceptions import (
    AccountPending,
    AccountRejected,
    AuthError,
    Forbidden,
    InvalidCredentials,
    InvalidToken,
    JoymedError,
    PasswordRequired,
    RemoteUnavailable,
    Unauthorized,
    ValidationFailed,
    WrongPortal,
)

logger = structlog.get_logger()

_CODED_ERRORS: dict[str, type[AuthError]] = {
    cls.reason.value: cls
    for cls in (
        Unauthorized,
        InvalidToken,
        InvalidCredentials,
        AccountPending,
        AccountRejected,
        PasswordRequired,
        WrongPortal,
        Forbidden,
    )
}

# The remote API reports some credential failures only as prose, in English
# or Czech.
_PENDING_HINTS = ("pending", "awaiting approval", "schválení")
_REJECTED_HINTS = ("rejected", "zamítnut")
_PASSWORD_HINTS = ("requires password", "password login", "hesla")

_VALIDATION_STATUSES = {400, 409, 422}
_AUTH_STATUSES = {401, 403}


def classify_auth_failure(
    code: str | None,
    message: str,
    default: type[AuthError],
    link: bool = False,
) -> AuthError:
    """Map a remote credential failure onto the local taxonomy.

    An explicit error code wins; otherwise the message is searched for
    status hints, and everything unrecognised falls back to ``default``.

    Args:
        code: Machine-readable code from the remote error body, if any.
        message: Remote error message.
        default: Error type used when nothing more specific matches.
        link: Whether the failure came from link-token resolution, where a
            password hint means link access is disabled.

    Returns:
        The AuthError to raise.
    """
    if code and code in _CODED_ERRORS:
        return _CODED_ERRORS[code](message or None)

    text = (message or "").lower()
    if any(hint in text for hint in _PENDING_HINTS):
        return AccountPending(message)
    if any(hint in text for hint in _REJECTED_HINTS):
        return AccountRejected(message)
    if link and any(hint in text for hint in _PASSWORD_HINTS):
        return PasswordRequired(message)
    return default(message or None)


def _field_errors(error: dict[str, Any]) -> dict[str, str]:
    fields = error.get("fields")
    if isinstance(fields, dict):
        return {str(k): str(v) for k, v in fields.items()}

    result: dict[str, str] = {}
    for item in error.get("errors") or []:
        if not isinstance(item, dict):
            continue
        name = item.get("field") or item.get("path") or item.get("param")
        if name:
            result[str(name)] = str(item.get("msg") or item.get("message") or "Invalid value")
    return result


class RemoteAccountGateway:
    """Account gateway speaking the remote API's JSON envelope.

    Successful responses look like ``{"success": true, "data": ...}``;
    failures like ``{"success": false, "error": {"message", "statusCode"}}``
    with optional ``code`` and ``fields`` members.
    """

    def __init__(
        self,
        base_url: str,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ) -> None:
        """Initialize the gateway.

        Args:
            base_url: Remote API root including its path prefix.
            client: Shared client; one is created when omitted.
            timeout: Request timeout in seconds, None for no timeout.
        """
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout),
            headers={"Content-Type": "application/json"},
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def login(self, email: str, password: str) -> tuple[str, Account | None]:
        """Authenticate with email and password."""
        data = await self._request(
            "POST",
            "/auth/login",
            json={"email": email, "password": password},
            operation="login",
            auth_error=InvalidCredentials,
            not_found=InvalidCredentials,
        )
        token = data.get("token") if isinstance(data, dict) else None
        if not token:
            raise RemoteUnavailable("Login response did not contain a token")

        account: Account | None = None
        user = data.get("user")
        if isinstance(user, dict):
            try:
                account = Account.model_validate(user)
            except ValidationError:
                logger.warning("remote_login_user_unparseable")
        return token, account

    async def identify_by_token(self, token: str) -> Account:
        """Resolve a link token."""
        data = await self._request(
            "POST",
            "/auth/identify-by-token",
            json={"token": token},
            operation="identify_by_token",
            not_found=InvalidToken,
            link=True,
        )
        return self._account(data, "identify_by_token")

    async def identify_by_icp(self, icp_number: str) -> Account:
        """Look up an account by ICP number."""
        data = await self._request(
            "POST",
            "/auth/identify",
            json={"icpNumber": icp_number},
            operation="identify_by_icp",
            not_found=InvalidToken,
        )
        return self._account(data, "identify_by_icp")

    async def preregister(self, payload: dict[str, Any]) -> Account:
        """Create a pending account."""
        data = await self._request(
            "POST",
            "/auth/preregister",
            json=payload,
            operation="preregister",
        )
        return self._account(data, "preregister")

    async def validate_account(
        self,
        credentials: Credentials,
        account_id: str,
        status: AccountStatus,
    ) -> Account:
        """Approve or reject an account."""
        data = await self._request(
            "POST",
            f"/auth/users/{account_id}/validate",
            json={"status": status.value},
            credentials=credentials,
            operation="validate_account",
        )
        return self._account(data, "validate_account")

    async def regenerate_link_token(self, credentials: Credentials, account_id: str) -> Account:
        """Replace an account's link token."""
        data = await self._request(
            "POST",
            f"/auth/users/{account_id}/regenerate-token",
            json={},
            credentials=credentials,
            operation="regenerate_link_token",
        )
        return self._account(data, "regenerate_link_token")

    async def list_pending(self, credentials: Credentials) -> list[Account]:
        """List accounts awaiting approval."""
        data = await self._request(
            "GET",
            "/auth/users/pending",
            credentials=credentials,
            operation="list_pending",
        )
        if not isinstance(data, list):
            raise RemoteUnavailable("list_pending returned an unexpected response")
        return [self._account(item, "list_pending") for item in data]

    async def get_profile(self, credentials: Credentials) -> Account:
        """Fetch the caller's profile."""
        data = await self._request(
            "GET",
            "/auth/profile",
            credentials=credentials,
            operation="get_profile",
            link=True,
        )
        return self._account(data, "get_profile")

    async def update_profile(self, credentials: Credentials, changes: dict[str, Any]) -> Account:
        """Update the caller's profile."""
        data = await self._request(
            "PUT",
            "/auth/profile",
            json=changes,
            credentials=credentials,
            operation="update_profile",
            link=True,
        )
        return self._account(data, "update_profile")

    async def _request(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        json: dict[str, Any] | None = None,
        credentials: Credentials | None = None,
        auth_error: type[AuthError] = InvalidToken,
        not_found: type[JoymedError] = ValidationFailed,
        link: bool = False,
    ) -> Any:
        """Send one request and unwrap the envelope.

        Raises:
            RemoteUnavailable: Transport failure, 5xx or unreadable body.
            ValidationFailed: 400/409/422, or 404 on a non-identity call.
            AuthError: 401/403, or 404 on an identity call.
        """
        headers = credentials.headers() if credentials else {}
        params = {"token": credentials.link_token} if credentials and credentials.link_token else None

        try:
            response = await self._client.request(
                method,
                path,
                json=json,
                headers=headers,
                params=params,
            )
        except httpx.RequestError as e:
            logger.error("remote_request_failed", operation=operation, error=str(e))
            raise RemoteUnavailable(f"Remote API unreachable during {operation}") from e

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.is_success:
            if not isinstance(body, dict) or body.get("success") is False:
                logger.error(
                    "remote_response_invalid",
                    operation=operation,
                    status_code=response.status_code,
                )
                raise RemoteUnavailable(f"Unexpected response during {operation}")
            if "success" not in body:
                return body
            if "data" not in body:
                logger.error("remote_response_invalid", operation=operation, reason="missing_data")
                raise RemoteUnavailable(f"Response without data during {operation}")
            return body["data"]

        error = body.get("error") if isinstance(body, dict) else None
        if not isinstance(error, dict):
            error = {}
        message = str(error.get("message") or response.reason_phrase or "")
        code = error.get("code")

        logger.info(
            "remote_request_rejected",
            operation=operation,
            status_code=response.status_code,
            code=code,
        )

        status = response.status_code
        if status >= 500 or (body is None and status not in _AUTH_STATUSES):
            raise RemoteUnavailable(f"Remote API failed during {operation}")
        if status in _VALIDATION_STATUSES:
            raise ValidationFailed(message or "Invalid input", fields=_field_errors(error))
        if status in _AUTH_STATUSES:
            raise classify_auth_failure(code, message, auth_error, link=link)
        if status == 404:
            if issubclass(not_found, AuthError):
                raise classify_auth_failure(code, message, not_found, link=link)
            raise ValidationFailed(message or "Not found", fields={"id": message or "Not found"})
        raise RemoteUnavailable(f"Remote API answered {status} during {operation}")

    def _account(self, data: Any, operation: str) -> Account:
        try:
            return Account.model_validate(data)
        except ValidationError as e:
            logger.error("remote_account_unparseable", operation=operation, errors=e.error_count())
            raise RemoteUnavailable(f"Unexpected account payload during {operation}") from None
