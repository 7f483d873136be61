"""Conversation and Message service layer.

All operations:
- Enforce owner-only access
- Use E_CONVERSATION_NOT_FOUND / E_COMPANION_NOT_FOUND consistently (prevent probing)
- Support page/limit pagination

Service functions correspond 1:1 with route handlers.
Routes are transport-only and call exactly one service function.
"""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from kindred.db.models import Companion, Conversation, Message
from kindred.errors import ApiErrorCode, NotFoundError
from kindred.logging import get_logger
from kindred.schemas.chat import ConversationSummaryOut, MessageOut
from kindred.schemas.companion import CompanionSummaryOut
from kindred.services.companions import resolve_chat_companion

logger = get_logger(__name__)

# =============================================================================
# Constants
# =============================================================================

DEFAULT_CONVERSATION_LIMIT = 20
DEFAULT_MESSAGE_LIMIT = 50
MIN_LIMIT = 1
MAX_LIMIT = 100

NO_MESSAGES_PLACEHOLDER = "No messages yet"


# =============================================================================
# Helper Functions
# =============================================================================


def message_to_out(message: Message) -> MessageOut:
    """Convert Message ORM model to MessageOut schema."""
    return MessageOut.model_validate(message)


def _offset(page: int, limit: int) -> int:
    return (max(page, 1) - 1) * limit


def _chronological(query):
    # A user turn and its reply can share a timestamp; the user turn sorts first
    return query.order_by(Message.timestamp.asc(), Message.is_user.desc(), Message.created_at.asc())


def find_active_conversation(db: Session, user_id: UUID, companion_id: UUID) -> Conversation | None:
    return db.scalar(
        select(Conversation).where(
            Conversation.user_id == user_id,
            Conversation.companion_id == companion_id,
            Conversation.is_active.is_(True),
        )
    )


def get_or_create_conversation(db: Session, user_id: UUID, companion: Companion) -> Conversation:
    """Return the active conversation for (user, companion), creating it if absent.

    The insert is committed on its own. If a concurrent request created the
    row first, the unique index rejects ours and the winner is re-read.
    """
    conversation = find_active_conversation(db, user_id, companion.id)
    if conversation is not None:
        return conversation

    conversation = Conversation(
        user_id=user_id,
        companion_id=companion.id,
        title=f"Chat with {companion.name}"[:100],
    )
    db.add(conversation)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        conversation = find_active_conversation(db, user_id, companion.id)
        if conversation is None:
            raise
        logger.info("conversation_create_race_lost", conversation_id=str(conversation.id))
        return conversation

    logger.info("conversation_created", conversation_id=str(conversation.id))
    return conversation


def _message_page(
    db: Session, conversation_id: UUID, page: int, limit: int
) -> tuple[list[MessageOut], int]:
    """One page of a conversation, oldest first, with the total message count."""
    total = (
        db.scalar(
            select(func.count())
            .select_from(Message)
            .where(Message.conversation_id == conversation_id)
        )
        or 0
    )
    messages = db.scalars(
        _chronological(select(Message).where(Message.conversation_id == conversation_id))
        .offset(_offset(page, limit))
        .limit(limit)
    )
    return [message_to_out(m) for m in messages], total


def _latest_message(db: Session, conversation_id: UUID) -> Message | None:
    return db.scalar(
        select(Message)
        .where(Message.conversation_id == conversation_id)
        .order_by(Message.timestamp.desc(), Message.is_user.asc(), Message.created_at.desc())
        .limit(1)
    )


# =============================================================================
# Service Functions
# =============================================================================


def list_conversation_summaries(
    db: Session,
    viewer_id: UUID,
    page: int = 1,
    limit: int = DEFAULT_CONVERSATION_LIMIT,
) -> tuple[list[ConversationSummaryOut], int]:
    """List the viewer's active conversations, most recently active first.

    Each summary carries its companion and the latest message text, falling
    back to the companion's greeting and then to a placeholder.

    Returns:
        Tuple of (summaries for the requested page, total active conversations).
    """
    filters = (Conversation.user_id == viewer_id, Conversation.is_active.is_(True))

    total = db.scalar(select(func.count()).select_from(Conversation).where(*filters)) or 0

    conversations = list(
        db.scalars(
            select(Conversation)
            .where(*filters)
            .order_by(Conversation.last_message_at.desc(), Conversation.id.desc())
            .offset(_offset(page, limit))
            .limit(limit)
        )
    )

    companion_ids = {c.companion_id for c in conversations}
    companions = {}
    if companion_ids:
        companions = {
            c.id: c for c in db.scalars(select(Companion).where(Companion.id.in_(companion_ids)))
        }

    summaries = []
    for conversation in conversations:
        companion = companions.get(conversation.companion_id)
        latest = _latest_message(db, conversation.id)

        if latest is not None:
            last_message = latest.content
            last_message_time = latest.timestamp
        else:
            last_message = (companion.seed if companion else None) or NO_MESSAGES_PLACEHOLDER
            last_message_time = conversation.last_message_at

        summaries.append(
            ConversationSummaryOut(
                id=conversation.id,
                companion_id=conversation.companion_id,
                companion=CompanionSummaryOut.model_validate(companion) if companion else None,
                title=conversation.title,
                last_message=last_message,
                last_message_time=last_message_time,
                last_message_at=conversation.last_message_at,
                created_at=conversation.created_at,
                updated_at=conversation.updated_at,
            )
        )

    return summaries, total


def list_companion_messages(
    db: Session,
    viewer_id: UUID,
    companion_id: UUID,
    page: int = 1,
    limit: int = DEFAULT_MESSAGE_LIMIT,
) -> tuple[list[MessageOut], int]:
    """Messages of the viewer's active conversation with a companion, oldest first.

    Returns:
        Tuple of (messages for the requested page, total messages in the conversation).

    Raises:
        NotFoundError(E_COMPANION_NOT_FOUND): Companion is inactive or not available to the viewer.
    """
    companion = resolve_chat_companion(db, viewer_id, companion_id)

    conversation = find_active_conversation(db, viewer_id, companion.id)
    if conversation is None:
        return [], 0

    return _message_page(db, conversation.id, page, limit)


def list_conversation_messages(
    db: Session,
    viewer_id: UUID,
    conversation_id: UUID,
    page: int = 1,
    limit: int = DEFAULT_MESSAGE_LIMIT,
) -> tuple[list[MessageOut], int]:
    """Messages of one conversation by id, oldest first.

    Readable by the owner regardless of the companion's state.

    Returns:
        Tuple of (messages for the requested page, total messages in the conversation).

    Raises:
        NotFoundError(E_CONVERSATION_NOT_FOUND): Missing or not owned by viewer.
    """
    conversation = db.get(Conversation, conversation_id)
    if conversation is None or conversation.user_id != viewer_id:
        raise NotFoundError(ApiErrorCode.E_CONVERSATION_NOT_FOUND, "Conversation not found")

    return _message_page(db, conversation.id, page, limit)
