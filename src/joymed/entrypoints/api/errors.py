"""Translation of domain errors into HTTP errors."""

from fastapi import HTTPException

from joymed.core.exceptions import (
    AuthError,
    Forbidden,
    JoymedError,
    RemoteUnavailable,
    ValidationFailed,
    WrongPortal,
)


def http_error(error: JoymedError) -> HTTPException:
    """Build the HTTPException for a domain error.

    Detail is always ``{"code", "message"}``; validation failures add
    ``fields``.
    """
    if isinstance(error, AuthError):
        status_code = 403 if isinstance(error, WrongPortal | Forbidden) else 401
        return HTTPException(
            status_code=status_code,
            detail={"code": error.code, "message": str(error)},
        )

    if isinstance(error, ValidationFailed):
        return HTTPException(
            status_code=422,
            detail={"code": "validation_failed", "message": str(error), "fields": error.fields},
        )

    if isinstance(error, RemoteUnavailable):
        return HTTPException(
            status_code=502,
            detail={"code": "remote_unavailable", "message": "Service temporarily unavailable"},
        )

    return HTTPException(status_code=500, detail={"code": "internal_error", "message": str(error)})
