"""Chat exchange and conversation read schemas."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import Field

from kindred.schemas.base import ApiModel, trimmed
from kindred.schemas.companion import CompanionSummaryOut

ModelProvider = Literal["openai", "gemini"]

ChatText = trimmed(min_length=1, max_length=1000)


# =============================================================================
# Request Schemas
# =============================================================================


class HistoryTurn(ApiModel):
    """One prior turn supplied by the client."""

    role: Literal["user", "assistant"]
    content: str = Field(..., min_length=1, max_length=2000)


class ChatRequest(ApiModel):
    """Request body for sending a chat message."""

    companion_id: UUID
    message: ChatText = Field(
        ..., description="Message text (1-1000 chars after trimming)"
    )
    model: ModelProvider = "openai"
    # Any length is accepted; only the most recent turns reach the provider
    conversation_history: list[HistoryTurn] = Field(default_factory=list)


# =============================================================================
# Response Schemas
# =============================================================================


class MessageOut(ApiModel):
    """Response schema for a message."""

    id: UUID
    conversation_id: UUID
    user_id: UUID
    companion_id: UUID
    content: str
    is_user: bool
    timestamp: datetime
    created_at: datetime


class UsageOut(ApiModel):
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None


class ChatMetadataOut(ApiModel):
    """Provider metadata for one exchange."""

    provider: str
    model: str
    usage: UsageOut | None = None
    finish_reason: str | None = None
    provider_request_id: str | None = None


class ChatReplyOut(ApiModel):
    """Result of a successful chat exchange."""

    response: str
    companion_id: UUID
    conversation_id: UUID
    timestamp: datetime
    user_message: MessageOut
    ai_message: MessageOut
    metadata: ChatMetadataOut


class ConversationSummaryOut(ApiModel):
    """Conversation enriched with its companion and most recent message."""

    id: UUID
    companion_id: UUID
    companion: CompanionSummaryOut | None = None
    title: str | None = None
    last_message: str
    last_message_time: datetime
    last_message_at: datetime
    has_unread: bool = False
    created_at: datetime
    updated_at: datetime
