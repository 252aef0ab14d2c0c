"""Request identity dependencies."""

from typing import Annotated

import structlog
from fastapi import Cookie, Depends, Header, Query, Request

from joymed.core.auth.context import AuthContext, AuthContextBuilder
from joymed.core.auth.guard import Portal
from joymed.core.exceptions import JoymedError
from joymed.entrypoints.api.deps import get_context_builder, get_portal
from joymed.entrypoints.api.errors import http_error

logger = structlog.get_logger()


async def get_auth_context(
    request: Request,
    portal: Annotated[Portal, Depends(get_portal)],
    builder: Annotated[AuthContextBuilder, Depends(get_context_builder)],
    auth_token: Annotated[str | None, Cookie()] = None,
    token: Annotated[str | None, Query()] = None,
    x_link_token: Annotated[str | None, Header()] = None,
) -> AuthContext:
    """Resolve who is making this request.

    The session cookie wins over a link token. Link tokens are read from the
    ``x-link-token`` header first, then the ``token`` query parameter, and
    only on portals that accept them.

    Raises:
        HTTPException: 401/403 for credential failures, 502 when the remote
            API is unreachable.
    """
    link_token = (x_link_token or token) if portal.accepts_link_tokens else None

    try:
        context = await builder.build(session_token=auth_token, link_token=link_token)
    except JoymedError as e:
        logger.info("auth_context_rejected", portal=portal.name, error=type(e).__name__)
        raise http_error(e) from None

    # Store in request state for downstream use
    request.state.auth = context

    logger.debug(
        "auth_context_resolved",
        portal=portal.name,
        subject_id=context.subject_id,
        mode=context.mode.value,
    )
    return context


RequireIdentity = Annotated[AuthContext, Depends(get_auth_context)]
