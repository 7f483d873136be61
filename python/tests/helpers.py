"""Test helpers for authentication and common test operations.

Provides:
- Token minting for the test identity provider
- Header generation for test requests
- User, companion and profile creation helpers
"""

import time
from uuid import UUID

import jwt
from sqlalchemy.orm import Session

from kindred.auth.provider import ExternalProfile
from kindred.auth.tokens import LocalTokenCodec
from kindred.db.models import Companion, User, UserRole
from kindred.services.passwords import hash_password
from tests.support.test_identity import TEST_ISSUER, MockIdentityProvider

DEFAULT_EXPIRES_IN = 3600  # 1 hour

# Low work factor keeps password hashing fast in tests
TEST_BCRYPT_ROUNDS = 4


def mint_external_token(
    external_id: str,
    expires_in: int = DEFAULT_EXPIRES_IN,
    issuer: str = TEST_ISSUER,
    **extra_claims,
) -> str:
    """Mint a token the test identity provider accepts.

    Args:
        external_id: The `sub` claim value.
        expires_in: Token validity in seconds from now (negative for expired).
        issuer: The `iss` claim value.
        **extra_claims: Additional claims to include in the token.
    """
    now = int(time.time())
    payload = {
        "sub": external_id,
        "iss": issuer,
        "iat": now,
        "exp": now + expires_in,
        **extra_claims,
    }
    return jwt.encode(payload, MockIdentityProvider.get_private_key(), algorithm="RS256")


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def external_headers(external_id: str) -> dict[str, str]:
    return bearer(mint_external_token(external_id))


def local_headers(codec: LocalTokenCodec, user_id: UUID) -> dict[str, str]:
    return bearer(codec.issue(user_id))


def make_profile(external_id: str, email: str | None = None, **kwargs) -> ExternalProfile:
    """Build an ExternalProfile with sensible defaults."""
    defaults = {
        "first_name": "Test",
        "last_name": "User",
    }
    defaults.update(kwargs)
    return ExternalProfile(
        external_id=external_id,
        email=email or f"{external_id}@example.com",
        **defaults,
    )


def create_local_user(
    db: Session,
    email: str,
    password: str = "secret1",
    name: str = "Test User",
    role: str = UserRole.user.value,
    is_active: bool = True,
) -> User:
    """Insert a local account directly and commit it."""
    user = User(
        name=name,
        email=email.lower(),
        password_hash=hash_password(password, rounds=TEST_BCRYPT_ROUNDS),
        role=role,
        is_active=is_active,
    )
    db.add(user)
    db.commit()
    return user


def create_companion(
    db: Session,
    user_id: UUID,
    name: str = "Sage",
    is_shared: bool = False,
    is_active: bool = True,
    **kwargs,
) -> Companion:
    """Insert a companion directly and commit it."""
    fields = {
        "description": "A calm and thoughtful guide.",
        "personality": "Patient, curious, and kind.",
        "category": "Wellness",
        "seed": "Hi, I'm here whenever you want to talk.",
    }
    fields.update(kwargs)
    companion = Companion(
        user_id=user_id,
        name=name,
        is_shared=is_shared,
        is_active=is_active,
        **fields,
    )
    db.add(companion)
    db.commit()
    return companion


def companion_payload(**overrides) -> dict:
    """Valid camelCase body for POST /companions."""
    body = {
        "name": "Nova",
        "description": "An upbeat science buddy.",
        "personality": "Enthusiastic and precise.",
        "category": "Education",
        "avatar": "https://example.com/nova.png",
        "instructions": "Explain things simply.",
        "seed": "Ready to explore the universe?",
    }
    body.update(overrides)
    return body
