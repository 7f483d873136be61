"""Companion Pydantic schemas.

Length bounds mirror the column sizes in kindred.db.models.Companion.
"""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import Field, field_validator

from kindred.schemas.base import ApiModel, trimmed, validate_http_url

CompanionTypeValue = Literal["free", "custom"]

CompanionName = trimmed(min_length=1, max_length=100)
CompanionDescription = trimmed(min_length=1, max_length=500)
CompanionPersonality = trimmed(min_length=1, max_length=1000)
CompanionCategory = trimmed(min_length=1, max_length=50)
CompanionInstructions = trimmed(max_length=2000)
CompanionSeed = trimmed(max_length=200)


# =============================================================================
# Request Schemas
# =============================================================================


class CreateCompanionRequest(ApiModel):
    """Request body for creating a companion."""

    name: CompanionName = Field(..., description="Companion name (1-100 chars)")
    description: CompanionDescription
    personality: CompanionPersonality
    category: CompanionCategory
    avatar: str | None = None
    instructions: CompanionInstructions | None = None
    seed: CompanionSeed | None = None
    type: CompanionTypeValue = "custom"
    is_shared: bool = False

    @field_validator("avatar")
    @classmethod
    def check_avatar(cls, value: str | None) -> str | None:
        return validate_http_url(value)


class UpdateCompanionRequest(ApiModel):
    """Partial companion update.

    Only fields present in the body are applied. Required fields cannot be
    cleared; optional text fields are cleared with an empty string.
    """

    name: CompanionName | None = None
    description: CompanionDescription | None = None
    personality: CompanionPersonality | None = None
    category: CompanionCategory | None = None
    avatar: str | None = None
    instructions: CompanionInstructions | None = None
    seed: CompanionSeed | None = None
    type: CompanionTypeValue | None = None
    is_shared: bool | None = None

    @field_validator("avatar")
    @classmethod
    def check_avatar(cls, value: str | None) -> str | None:
        # "" clears the avatar; validate_http_url maps it to None
        return validate_http_url(value) if value else value


# =============================================================================
# Response Schemas
# =============================================================================


class CompanionOut(ApiModel):
    """Response schema for a companion."""

    id: UUID
    user_id: UUID
    name: str
    description: str
    personality: str
    category: str
    avatar: str | None = None
    instructions: str | None = None
    seed: str | None = None
    type: str
    is_shared: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime


class CompanionTemplateOut(ApiModel):
    """A default companion template (not owned by anyone)."""

    name: str
    description: str
    personality: str
    category: str
    avatar: str
    instructions: str
    seed: str
    type: str


class CompanionSummaryOut(ApiModel):
    """Companion fields embedded in conversation summaries."""

    id: UUID
    name: str
    avatar: str | None = None
    category: str
    description: str
    seed: str | None = None
    is_active: bool
