"""External identity provider integration.

Provides:
- IdentityProvider: Protocol for the external "verify token → subject" oracle
- ClerkIdentityProvider: JWKS token verification + backend API profile lookup
- ExternalProfile / parse_external_profile: provider user payload → local fields
- external_user_id: deterministic local id for an external subject

Note: Test-only providers are in tests/support/test_identity.py
"""

import logging
import threading
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Protocol

import httpx
import jwt
from jwt import PyJWKClient
from jwt.exceptions import (
    ExpiredSignatureError,
    InvalidIssuerError,
    InvalidSignatureError,
    InvalidTokenError,
    PyJWKClientError,
)

from kindred.errors import ApiError, ApiErrorCode, UnauthorizedError

logger = logging.getLogger(__name__)

# Clock skew allowance in seconds
CLOCK_SKEW_SECONDS = 60

# Profile lookups run inside request handling; keep them short
PROFILE_TIMEOUT_S = 10.0

EXTERNAL_ID_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, "https://kindred.app/external-identity")


def external_user_id(external_id: str) -> uuid.UUID:
    """Local user id for an external subject.

    Stable across mirror failures, so ownership keys written before the
    local account exists still line up with it afterwards.
    """
    return uuid.uuid5(EXTERNAL_ID_NAMESPACE, external_id)


@dataclass(frozen=True)
class ExternalProfile:
    """User data reported by the external identity provider."""

    external_id: str
    email: str | None
    first_name: str | None = None
    last_name: str | None = None
    image_url: str | None = None
    email_verified: bool = False
    last_sign_in_at: datetime | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    @property
    def display_name(self) -> str:
        """Full name, falling back to the email address."""
        return (self.full_name or self.email or self.external_id)[:50]


def _primary_email(data: dict[str, Any]) -> tuple[str | None, bool]:
    addresses = data.get("email_addresses") or []
    if not addresses:
        return None, False

    primary_id = data.get("primary_email_address_id")
    chosen = next((a for a in addresses if a.get("id") == primary_id), addresses[0])
    verification = chosen.get("verification") or {}
    return chosen.get("email_address"), verification.get("status") == "verified"


def _epoch_ms(value: Any) -> datetime | None:
    if not isinstance(value, (int, float)):
        return None
    return datetime.fromtimestamp(value / 1000, tz=UTC)


def parse_external_profile(data: dict[str, Any]) -> ExternalProfile:
    """Parse a provider user object (backend API or webhook payload).

    Raises:
        ValueError: If the payload has no user id.
    """
    external_id = data.get("id")
    if not external_id:
        raise ValueError("Identity payload missing user id")

    email, verified = _primary_email(data)
    return ExternalProfile(
        external_id=str(external_id),
        email=email.lower() if email else None,
        first_name=data.get("first_name") or None,
        last_name=data.get("last_name") or None,
        image_url=data.get("image_url") or data.get("profile_image_url") or None,
        email_verified=verified,
        last_sign_in_at=_epoch_ms(data.get("last_sign_in_at")),
    )


class IdentityProvider(Protocol):
    """Protocol for the external identity oracle."""

    def verify(self, token: str) -> dict[str, Any]:
        """Verify token and return decoded claims (sub = external user id).

        Raises:
            ApiError(E_UNAUTHENTICATED): Token is invalid, expired, or malformed.
            ApiError(E_AUTH_UNAVAILABLE): Infrastructure failure.
        """
        ...

    def get_profile(self, external_id: str) -> ExternalProfile:
        """Fetch the provider's current profile for a user.

        Raises:
            ApiError(E_AUTH_UNAVAILABLE): Provider unreachable or errored.
        """
        ...


class ClerkIdentityProvider:
    """Production identity provider backed by Clerk.

    Validates:
    - Signature via JWKS (RS256), refreshing keys once on kid miss
    - exp / nbf with ±60s clock skew
    - iss matches configured issuer (after normalization)
    """

    def __init__(
        self,
        jwks_url: str,
        issuer: str,
        secret_key: str | None,
        api_url: str = "https://api.clerk.com/v1",
        cache_ttl: int = 3600,
    ):
        self.jwks_url = jwks_url
        self.issuer = issuer.rstrip("/")
        self.api_url = api_url.rstrip("/")
        self.cache_ttl = cache_ttl
        self._secret_key = secret_key

        self._jwks_client: PyJWKClient | None = None
        self._jwks_lock = threading.Lock()

    def _get_jwks_client(self, refresh: bool = False) -> PyJWKClient:
        with self._jwks_lock:
            if self._jwks_client is None or refresh:
                self._jwks_client = PyJWKClient(
                    self.jwks_url,
                    cache_keys=True,
                    lifespan=self.cache_ttl,
                )
            return self._jwks_client

    def _get_signing_key(self, token: str) -> Any:
        try:
            return self._get_jwks_client().get_signing_key_from_jwt(token)
        except PyJWKClientError as e:
            if "Unable to find" not in str(e) and "kid" not in str(e).lower():
                raise
            logger.info("Refreshing JWKS due to kid miss")
            try:
                return self._get_jwks_client(refresh=True).get_signing_key_from_jwt(token)
            except PyJWKClientError as retry_e:
                logger.warning("auth_failure", extra={"reason": "kid_not_found"})
                raise UnauthorizedError(message="Invalid token: signing key not found") from retry_e

    def verify(self, token: str) -> dict[str, Any]:
        try:
            signing_key = self._get_signing_key(token)
        except PyJWKClientError as e:
            logger.warning("auth_failure", extra={"reason": "jwks_unavailable", "error": str(e)})
            raise ApiError(
                ApiErrorCode.E_AUTH_UNAVAILABLE,
                "Authentication service unavailable",
            ) from e
        except jwt.DecodeError as e:
            # Header could not be parsed before a key was looked up
            raise UnauthorizedError(message="Invalid token format") from e

        try:
            payload = jwt.decode(
                token,
                signing_key.key,
                algorithms=["RS256"],
                issuer=self.issuer,
                leeway=CLOCK_SKEW_SECONDS,
                options={"require": ["exp", "iss", "sub"], "verify_aud": False},
            )
        except ExpiredSignatureError as e:
            logger.warning("auth_failure", extra={"reason": "expired_token"})
            raise UnauthorizedError(message="Token expired") from e
        except InvalidSignatureError as e:
            logger.warning("auth_failure", extra={"reason": "invalid_signature"})
            raise UnauthorizedError(message="Invalid token signature") from e
        except InvalidIssuerError as e:
            logger.warning("auth_failure", extra={"reason": "invalid_issuer"})
            raise UnauthorizedError(message="Invalid token issuer") from e
        except InvalidTokenError as e:
            logger.warning("auth_failure", extra={"reason": "invalid_token", "error": str(e)})
            raise UnauthorizedError(message="Invalid token") from e

        if not payload.get("sub"):
            logger.warning("auth_failure", extra={"reason": "missing_sub"})
            raise UnauthorizedError(message="Invalid token: missing sub")

        return payload

    def get_profile(self, external_id: str) -> ExternalProfile:
        if not self._secret_key:
            raise ApiError(ApiErrorCode.E_AUTH_UNAVAILABLE, "Identity provider not configured")

        try:
            response = httpx.get(
                f"{self.api_url}/users/{external_id}",
                headers={"Authorization": f"Bearer {self._secret_key}"},
                timeout=PROFILE_TIMEOUT_S,
            )
            response.raise_for_status()
            return parse_external_profile(response.json())
        except httpx.HTTPError as e:
            logger.warning("identity_profile_fetch_failed", extra={"error": type(e).__name__})
            raise ApiError(
                ApiErrorCode.E_AUTH_UNAVAILABLE,
                "Authentication service unavailable",
            ) from e
        except ValueError as e:
            raise ApiError(
                ApiErrorCode.E_AUTH_UNAVAILABLE,
                "Identity provider returned an unusable profile",
            ) from e
