"""
Signed, expiring identity tokens (HS256 JWTs).

There is no revocation list: a token stays valid until its `exp` claim.
"""
from __future__ import annotations

from datetime import timedelta
from typing import Optional

import jwt
import structlog

from .errors import InvalidToken
from .settings import DEFAULT_TOKEN_TTL, Settings
from .utils import utcnow

log = structlog.get_logger(__name__)


# PUBLIC_INTERFACE
class TokenService:
    """Issue and verify bearer tokens carrying a user id."""

    def __init__(
        self,
        secret: str,
        ttl: timedelta = DEFAULT_TOKEN_TTL,
        algorithm: str = "HS256",
        issuer: Optional[str] = None,
    ) -> None:
        self._secret = secret
        self._ttl = ttl
        self._algorithm = algorithm
        self._issuer = issuer

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenService":
        if settings.uses_default_secret:
            log.warning("JWT_SECRET not set, signing tokens with the insecure development secret")
        return cls(settings.jwt_secret, ttl=settings.jwt_expires_in, issuer=settings.jwt_issuer)

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def issue(self, user_id: str) -> str:
        """Return a signed token whose subject is `user_id`."""
        now = utcnow()
        claims = {
            "sub": user_id,
            "userId": user_id,
            "iat": now,
            "exp": now + self._ttl,
        }
        if self._issuer:
            claims["iss"] = self._issuer
        return jwt.encode(claims, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> str:
        """
        Check signature and expiry and return the user id.

        Raises:
            InvalidToken: if the token is malformed, forged, expired or lacks a subject.
        """
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": ["exp", "sub"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise InvalidToken("token expired") from e
        except jwt.InvalidTokenError as e:
            raise InvalidToken(str(e) or "invalid token") from e

        user_id = claims.get("userId") or claims.get("sub")
        if not isinstance(user_id, str) or not user_id:
            raise InvalidToken("token has no subject")
        return user_id
