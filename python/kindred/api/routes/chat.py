"""Chat exchange and conversation read routes.

- POST /chat: one exchange with a companion (async; provider call awaited)
- GET /chat/conversations: conversation summaries
- GET /chat/{companion_id}/messages: history with one companion
- GET /chat/conversations/{conversation_id}/messages: history by conversation id
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from kindred.api.deps import get_db, get_llm_router, get_settings_dep
from kindred.auth.middleware import Viewer, get_viewer
from kindred.config import Settings
from kindred.responses import success_response
from kindred.schemas.chat import ChatRequest
from kindred.services import chat as chat_service
from kindred.services import conversations as conversations_service
from kindred.services.conversations import (
    DEFAULT_CONVERSATION_LIMIT,
    DEFAULT_MESSAGE_LIMIT,
    MAX_LIMIT,
    MIN_LIMIT,
)
from kindred.services.llm import LLMRouter

router = APIRouter(prefix="/chat")


@router.post("")
async def send_chat_message(
    body: ChatRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    llm_router: Annotated[LLMRouter, Depends(get_llm_router)],
    settings: Annotated[Settings, Depends(get_settings_dep)],
) -> dict:
    """Send a message to a companion and return its reply.

    The user's message is stored before the provider is called and is kept
    when the call fails.

    Errors:
        E_COMPANION_NOT_FOUND (404): Companion not available to the viewer.
        E_PROVIDER_NOT_CONFIGURED (500): No API key for the selected provider.
        E_PROVIDER_ERROR (500): Provider call failed or returned no reply.
    """
    reply = await chat_service.send_chat_message(
        db, viewer.user_id, body, llm_router=llm_router, settings=settings
    )
    return success_response(reply.model_dump(mode="json"))


@router.get("/conversations")
def list_conversations(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=DEFAULT_CONVERSATION_LIMIT, ge=MIN_LIMIT, le=MAX_LIMIT),
) -> dict:
    """List active conversations, most recently active first; count is the total."""
    summaries, total = conversations_service.list_conversation_summaries(
        db, viewer.user_id, page=page, limit=limit
    )
    return success_response([s.model_dump(mode="json") for s in summaries], count=total)


@router.get("/conversations/{conversation_id}/messages")
def list_conversation_messages(
    conversation_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=DEFAULT_MESSAGE_LIMIT, ge=MIN_LIMIT, le=MAX_LIMIT),
) -> dict:
    messages, total = conversations_service.list_conversation_messages(
        db, viewer.user_id, conversation_id, page=page, limit=limit
    )
    return success_response([m.model_dump(mode="json") for m in messages], count=total)


@router.get("/{companion_id}/messages")
def list_companion_messages(
    companion_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=DEFAULT_MESSAGE_LIMIT, ge=MIN_LIMIT, le=MAX_LIMIT),
) -> dict:
    messages, total = conversations_service.list_companion_messages(
        db, viewer.user_id, companion_id, page=page, limit=limit
    )
    return success_response([m.model_dump(mode="json") for m in messages], count=total)
