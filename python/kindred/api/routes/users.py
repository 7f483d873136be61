"""User account routes (local-token guard).

Profile routes act on the viewer; listing and deactivation are admin-only.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from kindred.api.deps import get_db
from kindred.auth.middleware import Viewer, get_viewer, require_admin
from kindred.responses import success_response
from kindred.schemas.user import UpdateProfileRequest
from kindred.services import users as users_service

router = APIRouter(prefix="/users")


@router.get("")
def list_users(
    admin: Annotated[Viewer, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
    include_inactive: bool = Query(default=False, alias="includeInactive"),
) -> dict:
    users = users_service.list_users(db, include_inactive=include_inactive)
    return success_response([u.model_dump(mode="json") for u in users], count=len(users))


@router.get("/profile")
def get_profile(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    user = users_service.get_profile(db, viewer.user_id)
    return success_response(user.model_dump(mode="json"))


@router.put("/profile")
def update_profile(
    body: UpdateProfileRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Partial update of name, email, and avatar.

    Errors:
        E_EMAIL_TAKEN (400): Email belongs to another account.
    """
    user = users_service.update_profile(db, viewer.user_id, body)
    return success_response(user.model_dump(mode="json"), message="Profile updated successfully")


@router.get("/{user_id}")
def get_user(
    user_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    user = users_service.get_user(db, user_id)
    return success_response(user.model_dump(mode="json"))


@router.delete("/{user_id}")
def deactivate_user(
    user_id: UUID,
    admin: Annotated[Viewer, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Soft-deactivate an account. Its records are kept."""
    users_service.deactivate_user(db, user_id)
    return success_response(message="User deactivated successfully")
