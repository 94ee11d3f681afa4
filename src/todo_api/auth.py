from __future__ import annotations

from typing import Optional

import structlog
from fastapi import Depends, Header, Request

from .dependencies import get_token_service
from .errors import InvalidToken, Unauthenticated
from .tokens import TokenService

log = structlog.get_logger(__name__)


# PUBLIC_INTERFACE
def extract_bearer(authorization: Optional[str]) -> str:
    """
    Return the token from an 'Authorization: Bearer <token>' header value.

    The scheme is matched case-insensitively.

    Raises:
        Unauthenticated: header missing, wrong scheme, or empty token.
    """
    if not authorization:
        raise Unauthenticated("Missing Authorization header")
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        raise Unauthenticated("Invalid Authorization header")
    return parts[1].strip()


def _authenticate(request: Request, authorization: Optional[str], tokens: TokenService) -> str:
    token = extract_bearer(authorization)
    try:
        user_id = tokens.verify(token)
    except InvalidToken as e:
        log.debug("token rejected", reason=str(e))
        raise Unauthenticated("Invalid token") from e
    request.state.user_id = user_id
    structlog.contextvars.bind_contextvars(user_id=user_id)
    return user_id


# PUBLIC_INTERFACE
async def require_user(
    request: Request,
    authorization: Optional[str] = Header(default=None),
    tokens: TokenService = Depends(get_token_service),
) -> str:
    """
    Dependency for routes that need an authenticated user.

    Returns the user id and stores it on request.state.user_id.

    Raises:
        Unauthenticated: missing, malformed or invalid bearer token (401).
    """
    return _authenticate(request, authorization, tokens)


# PUBLIC_INTERFACE
async def optional_user(
    request: Request,
    authorization: Optional[str] = Header(default=None),
    tokens: TokenService = Depends(get_token_service),
) -> Optional[str]:
    """
    Dependency for routes where authentication only narrows or enables
    behaviour. A missing or invalid token yields None instead of an error.
    """
    if not authorization:
        return None
    try:
        return _authenticate(request, authorization, tokens)
    except Unauthenticated:
        return None
