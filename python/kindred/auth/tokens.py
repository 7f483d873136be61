"""Locally issued bearer tokens.

HS256 JWTs signed with the shared JWT_SECRET:
- sub: local user id (UUID string)
- iat / exp: issue time and expiry (JWT_EXPIRE_DAYS)
"""

import logging
from datetime import UTC, datetime, timedelta
from uuid import UUID

import jwt
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError

from kindred.errors import UnauthorizedError

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"


class LocalTokenCodec:
    """Issues and decodes locally signed tokens."""

    def __init__(self, secret: str, expire_days: int = 30):
        self._secret = secret
        self.expire_days = expire_days

    def issue(self, user_id: UUID, *, now: datetime | None = None) -> str:
        """Mint a token for the given user."""
        now = now or datetime.now(UTC)
        payload = {
            "sub": str(user_id),
            "iat": now,
            "exp": now + timedelta(days=self.expire_days),
        }
        return jwt.encode(payload, self._secret, algorithm=ALGORITHM)

    def decode(self, token: str) -> UUID:
        """Verify signature and expiry and return the embedded user id.

        Raises:
            UnauthorizedError: Token is invalid, expired, or malformed.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                options={"require": ["exp", "sub"]},
            )
        except ExpiredSignatureError as e:
            logger.warning("auth_failure", extra={"reason": "expired_token"})
            raise UnauthorizedError(message="Token expired") from e
        except InvalidTokenError as e:
            logger.warning("auth_failure", extra={"reason": "invalid_token"})
            raise UnauthorizedError(message="Invalid token") from e

        try:
            return UUID(str(payload["sub"]))
        except ValueError as e:
            logger.warning("auth_failure", extra={"reason": "invalid_sub"})
            raise UnauthorizedError(message="Invalid token") from e
