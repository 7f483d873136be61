"""Pydantic schemas for request/response models.

All schemas are re-exported here for convenient imports.
"""

from kindred.schemas.base import ApiModel
from kindred.schemas.chat import (
    ChatMetadataOut,
    ChatReplyOut,
    ChatRequest,
    ConversationSummaryOut,
    HistoryTurn,
    MessageOut,
    UsageOut,
)
from kindred.schemas.companion import (
    CompanionOut,
    CompanionSummaryOut,
    CompanionTemplateOut,
    CreateCompanionRequest,
    UpdateCompanionRequest,
)
from kindred.schemas.user import (
    AuthResult,
    ExternalProfileOut,
    IdentityMeOut,
    IdentityProfileRequest,
    LoginRequest,
    RegisterRequest,
    UpdateProfileRequest,
    UserOut,
)

__all__ = [
    "ApiModel",
    # Users
    "RegisterRequest",
    "LoginRequest",
    "UpdateProfileRequest",
    "IdentityProfileRequest",
    "UserOut",
    "AuthResult",
    "ExternalProfileOut",
    "IdentityMeOut",
    # Companions
    "CreateCompanionRequest",
    "UpdateCompanionRequest",
    "CompanionOut",
    "CompanionTemplateOut",
    "CompanionSummaryOut",
    # Chat
    "ChatRequest",
    "HistoryTurn",
    "MessageOut",
    "UsageOut",
    "ChatMetadataOut",
    "ChatReplyOut",
    "ConversationSummaryOut",
]
