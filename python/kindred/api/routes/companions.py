"""Companion CRUD routes.

Routes are transport-only: each calls exactly one service function.
All routes use the external-identity guard and are scoped to the viewer.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from kindred.api.deps import get_db
from kindred.auth.middleware import Viewer, get_viewer
from kindred.responses import success_response
from kindred.schemas.companion import CreateCompanionRequest, UpdateCompanionRequest
from kindred.services import companions as companions_service

router = APIRouter(prefix="/companions")


@router.get("")
def list_companions(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """List the viewer's active companions, newest first."""
    companions = companions_service.list_companions(db, viewer.user_id)
    return success_response(
        [c.model_dump(mode="json") for c in companions], count=len(companions)
    )


@router.get("/templates")
def list_templates(viewer: Annotated[Viewer, Depends(get_viewer)]) -> dict:
    templates = companions_service.list_templates()
    return success_response([t.model_dump(mode="json") for t in templates], count=len(templates))


@router.get("/{companion_id}")
def get_companion(
    companion_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Errors:
    E_COMPANION_NOT_FOUND (404): Missing, deleted, or not owned.
    """
    companion = companions_service.get_companion(db, viewer.user_id, companion_id)
    return success_response(companion.model_dump(mode="json"))


@router.post("", status_code=201)
def create_companion(
    body: CreateCompanionRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Create a companion owned by the viewer.

    Errors:
        E_INVALID_REQUEST (400): Field validation failed.
        E_NAME_CONFLICT (400): Viewer already has an active companion with this name.
        E_FORBIDDEN (403): Non-admin requested isShared.
    """
    companion = companions_service.create_companion(db, viewer, body)
    return success_response(
        companion.model_dump(mode="json"), message="Companion created successfully"
    )


@router.put("/{companion_id}")
def update_companion(
    companion_id: UUID,
    body: UpdateCompanionRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    companion = companions_service.update_companion(db, viewer, companion_id, body)
    return success_response(
        companion.model_dump(mode="json"), message="Companion updated successfully"
    )


@router.delete("/{companion_id}")
def delete_companion(
    companion_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Soft delete. Conversations and messages stay readable."""
    companions_service.delete_companion(db, viewer.user_id, companion_id)
    return success_response(message="Companion deleted successfully")
