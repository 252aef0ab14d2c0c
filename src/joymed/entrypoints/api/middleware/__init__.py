"""Request identity and session cookie handling."""

from joymed.entrypoints.api.middleware.auth import RequireIdentity, get_auth_context
from joymed.entrypoints.api.middleware.session import (
    SESSION_COOKIE_MAX_AGE,
    SESSION_COOKIE_NAME,
    clear_session_cookie,
    set_session_cookie,
)

__all__ = [
    "RequireIdentity",
    "SESSION_COOKIE_MAX_AGE",
    "SESSION_COOKIE_NAME",
    "clear_session_cookie",
    "get_auth_context",
    "set_session_cookie",
]
