"""Chat exchange service - core flow.

Phase 1 - Prepare (single DB transaction):
- Resolve companion (active, owned or shared)
- Find or create the (user, companion) conversation
- Insert the user message and commit it

Phase 2 - Execute (no DB transaction held):
- Check the provider key
- Render prompt
- Call the provider through the router

Phase 3 - Finalize (single DB transaction):
- Insert the companion reply
- Bump conversation.last_message_at

Invariants:
- The user message is committed before the provider is contacted, so it
  survives configuration and provider failures
- A failed exchange never writes a reply, and there is no canned fallback
- No DB transaction held during the provider call

Sync DB access uses run_in_threadpool (starlette) to avoid blocking the event loop.
"""

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from kindred.config import Settings
from kindred.db.models import Conversation, Message, utcnow
from kindred.errors import ConfigError, ProviderError
from kindred.logging import get_logger
from kindred.schemas.chat import ChatMetadataOut, ChatReplyOut, ChatRequest, UsageOut
from kindred.services.companions import resolve_chat_companion
from kindred.services.conversations import get_or_create_conversation, message_to_out
from kindred.services.llm import (
    LLMError,
    LLMRequest,
    LLMRouter,
    Turn,
    build_system_prompt,
    render_prompt,
)

logger = get_logger(__name__)

REPLY_MAX_TOKENS = 200
REPLY_TEMPERATURE = 0.7
MAX_MESSAGE_CHARS = 2000

PROVIDER_LABELS = {
    "openai": "OpenAI",
    "gemini": "Gemini",
}


@dataclass(frozen=True)
class PreparedExchange:
    """State carried from the prepare phase into execution."""

    conversation_id: UUID
    companion_id: UUID
    system_prompt: str
    user_message: Message


def prepare_exchange(db: Session, viewer_id: UUID, req: ChatRequest) -> PreparedExchange:
    """Phase 1: resolve the companion and persist the user's message.

    Raises:
        NotFoundError(E_COMPANION_NOT_FOUND): Companion not available to the viewer.
    """
    companion = resolve_chat_companion(db, viewer_id, req.companion_id)
    conversation = get_or_create_conversation(db, viewer_id, companion)

    now = utcnow()
    user_message = Message(
        conversation_id=conversation.id,
        user_id=viewer_id,
        companion_id=companion.id,
        content=req.message,
        is_user=True,
        timestamp=now,
        created_at=now,
    )
    db.add(user_message)
    conversation.last_message_at = now
    db.commit()

    return PreparedExchange(
        conversation_id=conversation.id,
        companion_id=companion.id,
        system_prompt=build_system_prompt(
            name=companion.name,
            category=companion.category,
            personality=companion.personality,
            description=companion.description,
            instructions=companion.instructions,
        ),
        user_message=user_message,
    )


def finalize_exchange(db: Session, prepared: PreparedExchange, viewer_id: UUID, text: str) -> Message:
    """Phase 3: persist the companion reply and advance the conversation."""
    now = utcnow()
    ai_message = Message(
        conversation_id=prepared.conversation_id,
        user_id=viewer_id,
        companion_id=prepared.companion_id,
        content=text[:MAX_MESSAGE_CHARS],
        is_user=False,
        timestamp=now,
        created_at=now,
    )
    db.add(ai_message)

    conversation = db.get(Conversation, prepared.conversation_id)
    if conversation is not None:
        conversation.last_message_at = now

    db.commit()
    return ai_message


async def send_chat_message(
    db: Session,
    viewer_id: UUID,
    req: ChatRequest,
    *,
    llm_router: LLMRouter,
    settings: Settings,
) -> ChatReplyOut:
    """Run one chat exchange between the viewer and a companion.

    Args:
        db: Database session.
        viewer_id: Authenticated user ID.
        req: Validated chat request.
        llm_router: Provider router sharing the app's HTTP client.
        settings: Application settings (provider keys and models).

    Returns:
        ChatReplyOut with both persisted messages and provider metadata.

    Raises:
        NotFoundError: Companion not available to the viewer.
        ConfigError: No API key configured for the selected provider.
        ProviderError: The provider call failed or returned no usable reply.
    """
    provider = req.model
    label = PROVIDER_LABELS.get(provider, provider)

    prepared = await run_in_threadpool(prepare_exchange, db, viewer_id, req)

    api_key = settings.provider_api_key(provider)
    if not api_key:
        logger.warning(
            "chat_provider_not_configured",
            provider=provider,
            conversation_id=str(prepared.conversation_id),
        )
        raise ConfigError(label)

    model_name = settings.provider_model(provider)
    history = [Turn(role=t.role, content=t.content) for t in req.conversation_history]
    llm_request = LLMRequest(
        model_name=model_name,
        messages=render_prompt(req.message, history, prepared.system_prompt),
        max_tokens=REPLY_MAX_TOKENS,
        temperature=REPLY_TEMPERATURE,
    )

    try:
        response = await llm_router.generate(
            provider, llm_request, api_key, timeout_s=settings.llm_timeout_s
        )
    except LLMError as e:
        logger.error(
            "chat_provider_failed",
            provider=provider,
            error_class=e.error_class.value,
            conversation_id=str(prepared.conversation_id),
        )
        raise ProviderError(label, e.message) from e

    ai_message = await run_in_threadpool(
        finalize_exchange, db, prepared, viewer_id, response.text
    )

    logger.info(
        "chat_exchange_completed",
        provider=provider,
        conversation_id=str(prepared.conversation_id),
        reply_chars=len(ai_message.content),
    )

    usage = response.usage
    return ChatReplyOut(
        response=ai_message.content,
        companion_id=prepared.companion_id,
        conversation_id=prepared.conversation_id,
        timestamp=ai_message.timestamp,
        user_message=message_to_out(prepared.user_message),
        ai_message=message_to_out(ai_message),
        metadata=ChatMetadataOut(
            provider=provider,
            model=response.model or model_name,
            usage=UsageOut(
                prompt_tokens=usage.prompt_tokens,
                completion_tokens=usage.completion_tokens,
                total_tokens=usage.total_tokens,
            )
            if usage
            else None,
            finish_reason=response.finish_reason,
            provider_request_id=response.provider_request_id,
        ),
    )
