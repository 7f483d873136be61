"""Test-only identity provider using a locally generated RSA keypair.

This module provides MockIdentityProvider for use in tests only. It
validates the same claim structure as ClerkIdentityProvider and serves
profiles from an in-memory registry instead of the provider's backend API.
"""

import logging
import threading
from typing import Any

import jwt
from jwt.exceptions import (
    DecodeError,
    ExpiredSignatureError,
    InvalidIssuerError,
    InvalidSignatureError,
    InvalidTokenError,
)

from kindred.auth.provider import ExternalProfile
from kindred.errors import ApiError, ApiErrorCode, UnauthorizedError

logger = logging.getLogger(__name__)

# Clock skew allowance in seconds (same as production provider)
CLOCK_SKEW_SECONDS = 60

TEST_ISSUER = "https://clerk.test.example"


class MockIdentityProvider:
    """Identity provider for tests.

    Usage:
        provider = MockIdentityProvider()
        provider.add_profile(ExternalProfile(external_id="user_1", email="a@x.com"))
        claims = provider.verify(token)

        # To mint tokens, use the private key:
        private_key = MockIdentityProvider.get_private_key()
    """

    # Class-level RSA keypair (generated once)
    _private_key: bytes | None = None
    _public_key: bytes | None = None
    _lock = threading.Lock()

    def __init__(self, issuer: str = TEST_ISSUER):
        self.issuer = issuer
        self.profiles: dict[str, ExternalProfile] = {}
        self.unavailable = False
        self.profile_calls = 0
        self._ensure_keypair()

    @classmethod
    def _ensure_keypair(cls) -> None:
        """Generate RSA keypair if not already generated."""
        with cls._lock:
            if cls._private_key is None:
                from cryptography.hazmat.primitives import serialization
                from cryptography.hazmat.primitives.asymmetric import rsa

                private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)

                cls._private_key = private_key.private_bytes(
                    encoding=serialization.Encoding.PEM,
                    format=serialization.PrivateFormat.PKCS8,
                    encryption_algorithm=serialization.NoEncryption(),
                )
                cls._public_key = private_key.public_key().public_bytes(
                    encoding=serialization.Encoding.PEM,
                    format=serialization.PublicFormat.SubjectPublicKeyInfo,
                )

    @classmethod
    def get_private_key(cls) -> bytes:
        cls._ensure_keypair()
        assert cls._private_key is not None
        return cls._private_key

    @classmethod
    def get_public_key(cls) -> bytes:
        cls._ensure_keypair()
        assert cls._public_key is not None
        return cls._public_key

    def add_profile(self, profile: ExternalProfile) -> ExternalProfile:
        self.profiles[profile.external_id] = profile
        return profile

    def verify(self, token: str) -> dict[str, Any]:
        """Verify a test token with the same checks as the production provider."""
        try:
            payload = jwt.decode(
                token,
                self.get_public_key(),
                algorithms=["RS256"],
                issuer=self.issuer,
                leeway=CLOCK_SKEW_SECONDS,
                options={"require": ["exp", "iss", "sub"], "verify_aud": False},
            )
        except ExpiredSignatureError as e:
            raise UnauthorizedError(message="Token expired") from e
        except InvalidSignatureError as e:
            raise UnauthorizedError(message="Invalid token signature") from e
        except InvalidIssuerError as e:
            raise UnauthorizedError(message="Invalid token issuer") from e
        except DecodeError as e:
            raise UnauthorizedError(message="Invalid token format") from e
        except InvalidTokenError as e:
            raise UnauthorizedError(message="Invalid token") from e

        if not payload.get("sub"):
            raise UnauthorizedError(message="Invalid token: missing sub")
        return payload

    def get_profile(self, external_id: str) -> ExternalProfile:
        self.profile_calls += 1
        if self.unavailable:
            logger.warning("mock identity provider marked unavailable")
            raise ApiError(ApiErrorCode.E_AUTH_UNAVAILABLE, "Authentication service unavailable")

        profile = self.profiles.get(external_id)
        if profile is None:
            raise ApiError(ApiErrorCode.E_AUTH_UNAVAILABLE, "Unknown external user")
        return profile
