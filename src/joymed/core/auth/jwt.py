"""Session credential codec.

Signature verification belongs to the remote API, which is consulted before
any privileged operation. This tier only reads the embedded claims to decide
which portal a credential is destined for.
"""

from datetime import datetime, timedelta, timezone

import jwt

from joymed.core.auth.types import Role, TokenClaims

ALGORITHM = "HS256"
SESSION_TOKEN_EXPIRE_DAYS = 7


def decode(token: str | None) -> TokenClaims | None:
    """Read subject and role from a session credential without verifying it.

    Args:
        token: Encoded JWT string.

    Returns:
        Decoded claims, or None for anything malformed: wrong segment count,
        bad encoding, a payload that is not a JSON object, a missing subject
        or an unknown role.
    """
    if not token:
        return None

    try:
        payload = jwt.decode(token, options={"verify_signature": False})
    except (jwt.PyJWTError, ValueError, TypeError):
        return None

    if not isinstance(payload, dict):
        return None

    subject = payload.get("userId") or payload.get("sub")
    if not subject or isinstance(subject, bool) or not isinstance(subject, str | int):
        return None

    try:
        role = Role(payload.get("role"))
    except (ValueError, TypeError):
        return None

    email = payload.get("email")
    return TokenClaims(
        subject_id=str(subject),
        role=role,
        email=email if isinstance(email, str) and email else None,
    )


def is_role(token: str | None, role: Role) -> bool:
    """Check whether a credential decodes to the given role."""
    claims = decode(token)
    return claims is not None and claims.role == role


def encode(
    subject_id: str,
    role: Role,
    secret: str,
    email: str | None = None,
    expires_in: timedelta = timedelta(days=SESSION_TOKEN_EXPIRE_DAYS),
) -> str:
    """Mint a signed session credential.

    Production credentials come from the remote issuer; this is used by the
    in-memory gateway and by tests.

    Args:
        subject_id: Account identifier.
        role: Account role.
        secret: HMAC signing secret.
        email: Optional email claim.
        expires_in: Lifetime of the credential.

    Returns:
        Encoded JWT string.
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sub": subject_id,
        "userId": subject_id,
        "role": role.value,
        "iat": int(now.timestamp()),
        "exp": int((now + expires_in).timestamp()),
    }
    if email:
        payload["email"] = email

    return jwt.encode(payload, secret, algorithm=ALGORITHM)
