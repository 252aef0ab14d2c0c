"""Session cookie persistence."""

from fastapi import Response

SESSION_COOKIE_NAME = "auth_token"
SESSION_COOKIE_MAX_AGE = 60 * 60 * 24 * 7  # 7 days


def set_session_cookie(response: Response, token: str, secure: bool) -> None:
    """Persist an accepted session credential.

    Args:
        response: Outgoing response.
        token: Session credential accepted by the login flow.
        secure: Whether to add the Secure attribute (production only).
    """
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=token,
        max_age=SESSION_COOKIE_MAX_AGE,
        path="/",
        secure=secure,
        httponly=True,
        samesite="lax",
    )


def clear_session_cookie(response: Response) -> None:
    """Delete the session cookie."""
    response.delete_cookie(key=SESSION_COOKIE_NAME, path="/")
