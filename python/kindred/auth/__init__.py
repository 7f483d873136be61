"""Authentication and authorization module.

This module provides:
- Locally issued token codec (HS256)
- External identity provider (JWKS verification + profile lookup)
- Auth middleware for FastAPI
- Request state with viewer identity

Guards live in kindred.auth.guards; they depend on the service layer and
are wired up by the application factory.

Note: Test-only identity providers are in tests/support/test_identity.py
"""

from kindred.auth.middleware import AuthMiddleware, Viewer, get_viewer, require_admin
from kindred.auth.provider import (
    ClerkIdentityProvider,
    ExternalProfile,
    IdentityProvider,
    external_user_id,
    parse_external_profile,
)
from kindred.auth.tokens import LocalTokenCodec

__all__ = [
    "AuthMiddleware",
    "Viewer",
    "get_viewer",
    "require_admin",
    "ClerkIdentityProvider",
    "ExternalProfile",
    "IdentityProvider",
    "external_user_id",
    "parse_external_profile",
    "LocalTokenCodec",
]
