"""External identity routes.

sync-user, me and profile use the external-identity guard. The webhook is
public and authenticated by its signature headers when a secret is set.
"""

import json
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from kindred.api.deps import get_db, get_identity_provider, get_settings_dep
from kindred.auth.middleware import Viewer, get_viewer
from kindred.auth.provider import IdentityProvider
from kindred.config import Settings
from kindred.errors import ApiError, ApiErrorCode
from kindred.responses import success_response
from kindred.schemas.user import IdentityProfileRequest
from kindred.services import identity as identity_service

router = APIRouter(prefix="/identity")


@router.post("/sync-user")
def sync_user(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    provider: Annotated[IdentityProvider, Depends(get_identity_provider)],
) -> dict:
    user = identity_service.sync_user(db, viewer, provider)
    return success_response(
        {"user": user.model_dump(mode="json")}, message="User synced successfully"
    )


@router.get("/me")
def identity_me(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    provider: Annotated[IdentityProvider, Depends(get_identity_provider)],
) -> dict:
    """Errors:
    E_USER_NOT_FOUND (404): No local mirror yet.
    """
    result = identity_service.get_identity_me(db, viewer, provider)
    return success_response(result.model_dump(mode="json"))


@router.put("/profile")
def update_profile(
    body: IdentityProfileRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    user = identity_service.update_identity_profile(db, viewer, body)
    return success_response(
        {"user": user.model_dump(mode="json")}, message="Profile updated successfully"
    )


@router.post("/webhook")
async def webhook(
    request: Request,
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings_dep)],
) -> dict:
    """Apply an identity provider user event.

    Errors:
        E_WEBHOOK_INVALID (400): Bad signature or payload.
    """
    body = await request.body()

    if settings.clerk_webhook_secret:
        identity_service.verify_webhook_signature(
            settings.clerk_webhook_secret, request.headers, body
        )

    try:
        event = json.loads(body)
    except ValueError:
        raise ApiError(ApiErrorCode.E_WEBHOOK_INVALID, "Invalid webhook payload") from None
    if not isinstance(event, dict):
        raise ApiError(ApiErrorCode.E_WEBHOOK_INVALID, "Invalid webhook payload")

    event_type = await run_in_threadpool(identity_service.handle_webhook_event, db, event)
    return success_response({"received": True, "type": event_type})
