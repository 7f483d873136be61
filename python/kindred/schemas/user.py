"""User account Pydantic schemas.

Contains request and response models for the auth, users and identity
endpoints. Password digests never appear in any response schema.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import EmailStr, Field, field_validator

from kindred.schemas.base import ApiModel, trimmed, validate_http_url

UserName = trimmed(min_length=1, max_length=50)
Bio = trimmed(max_length=500)

# =============================================================================
# Request Schemas
# =============================================================================


class RegisterRequest(ApiModel):
    """Request body for local account registration."""

    name: UserName = Field(..., description="Display name (1-50 chars)")
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128, description="At least 6 chars")


class LoginRequest(ApiModel):
    """Request body for local login."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)


class UpdateProfileRequest(ApiModel):
    """Partial profile update. Omitted fields are left unchanged."""

    name: UserName | None = None
    email: EmailStr | None = None
    avatar: str | None = None

    @field_validator("avatar")
    @classmethod
    def check_avatar(cls, value: str | None) -> str | None:
        return validate_http_url(value)


class IdentityProfileRequest(ApiModel):
    """Partial update of local-only profile fields for mirrored accounts."""

    preferences: dict[str, Any] | None = None
    bio: Bio | None = None
    website: str | None = None

    @field_validator("website")
    @classmethod
    def check_website(cls, value: str | None) -> str | None:
        return validate_http_url(value)


# =============================================================================
# Response Schemas
# =============================================================================


class UserOut(ApiModel):
    """Response schema for a user account."""

    id: UUID
    name: str
    email: str
    role: str
    is_active: bool
    avatar: str | None = None
    auth_source: str
    first_name: str | None = None
    last_name: str | None = None
    bio: str | None = None
    website: str | None = None
    preferences: dict[str, Any] | None = None
    last_login: datetime | None = None
    created_at: datetime
    updated_at: datetime


class AuthResult(ApiModel):
    """Token plus the account it was issued for."""

    token: str
    user: UserOut


class ExternalProfileOut(ApiModel):
    """Live data fetched from the external identity provider."""

    image_url: str | None = None
    email_verified: bool = False
    last_sign_in_at: datetime | None = None


class IdentityMeOut(ApiModel):
    """Local mirror plus live identity provider data."""

    user: UserOut
    external_id: str
    profile: ExternalProfileOut | None = None
