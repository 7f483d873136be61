"""Companion service layer.

All operations:
- Are scoped to the viewer's own companions
- Treat missing, inactive and not-owned companions identically (E_COMPANION_NOT_FOUND)
- Enforce name uniqueness per owner among active companions, both here and
  through the partial unique index

Service functions correspond 1:1 with route handlers.
"""

from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from kindred.auth.middleware import Viewer
from kindred.db.models import Companion
from kindred.errors import ApiErrorCode, ConflictError, ForbiddenError, NotFoundError
from kindred.logging import get_logger
from kindred.schemas.companion import (
    CompanionOut,
    CompanionTemplateOut,
    CreateCompanionRequest,
    UpdateCompanionRequest,
)
from kindred.services.seeder import get_default_companion_templates

logger = get_logger(__name__)

NAME_CONFLICT_MESSAGE = "A companion with this name already exists"

# Optional text columns; an empty string in an update clears them
CLEARABLE_FIELDS = ("avatar", "instructions", "seed")


# =============================================================================
# Helper Functions
# =============================================================================


def companion_to_out(companion: Companion) -> CompanionOut:
    """Convert Companion ORM model to CompanionOut schema."""
    return CompanionOut.model_validate(companion)


def _not_found() -> NotFoundError:
    return NotFoundError(ApiErrorCode.E_COMPANION_NOT_FOUND, "Companion not found")


def _name_conflict() -> ConflictError:
    return ConflictError(ApiErrorCode.E_NAME_CONFLICT, NAME_CONFLICT_MESSAGE, field="name")


def get_companion_for_owner_or_404(db: Session, viewer_id: UUID, companion_id: UUID) -> Companion:
    """Load an active companion owned by the viewer.

    Raises:
        NotFoundError(E_COMPANION_NOT_FOUND): Missing, inactive, or not owned.
    """
    companion = db.get(Companion, companion_id)
    if companion is None or not companion.is_active or companion.user_id != viewer_id:
        raise _not_found()
    return companion


def resolve_chat_companion(db: Session, viewer_id: UUID, companion_id: UUID) -> Companion:
    """Load an active companion the viewer may chat with.

    Shared companions are available to every user; everything else must be
    owned by the viewer.

    Raises:
        NotFoundError(E_COMPANION_NOT_FOUND)
    """
    companion = db.scalar(
        select(Companion).where(
            Companion.id == companion_id,
            Companion.is_active.is_(True),
            or_(Companion.user_id == viewer_id, Companion.is_shared.is_(True)),
        )
    )
    if companion is None:
        raise _not_found()
    return companion


def _name_taken(
    db: Session, owner_id: UUID, name: str, exclude_id: UUID | None = None
) -> bool:
    query = select(Companion.id).where(
        Companion.user_id == owner_id,
        Companion.name == name,
        Companion.is_active.is_(True),
    )
    if exclude_id is not None:
        query = query.where(Companion.id != exclude_id)
    return db.scalar(query.limit(1)) is not None


def _commit_or_name_conflict(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError:
        # Concurrent write won the (owner, name) index
        db.rollback()
        raise _name_conflict() from None


# =============================================================================
# Service Functions
# =============================================================================


def list_companions(db: Session, viewer_id: UUID) -> list[CompanionOut]:
    """List the viewer's active companions, newest first."""
    companions = db.scalars(
        select(Companion)
        .where(Companion.user_id == viewer_id, Companion.is_active.is_(True))
        .order_by(Companion.created_at.desc(), Companion.id.desc())
    )
    return [companion_to_out(c) for c in companions]


def get_companion(db: Session, viewer_id: UUID, companion_id: UUID) -> CompanionOut:
    return companion_to_out(get_companion_for_owner_or_404(db, viewer_id, companion_id))


def create_companion(db: Session, viewer: Viewer, req: CreateCompanionRequest) -> CompanionOut:
    """Create a companion owned by the viewer.

    Raises:
        ForbiddenError: Non-admin asked for a shared companion.
        ConflictError(E_NAME_CONFLICT): Viewer already has an active companion with this name.
    """
    if req.is_shared and not viewer.is_admin:
        raise ForbiddenError(message="Only admins can create shared companions")

    if _name_taken(db, viewer.user_id, req.name):
        raise _name_conflict()

    companion = Companion(user_id=viewer.user_id, **req.model_dump(by_alias=False))
    db.add(companion)
    _commit_or_name_conflict(db)

    logger.info("companion_created", companion_id=str(companion.id))
    return companion_to_out(companion)


def update_companion(
    db: Session, viewer: Viewer, companion_id: UUID, req: UpdateCompanionRequest
) -> CompanionOut:
    """Apply a partial update to one of the viewer's companions.

    Only fields present in the request are touched; explicit nulls for
    required fields are ignored.
    """
    companion = get_companion_for_owner_or_404(db, viewer.user_id, companion_id)
    changes = req.model_dump(exclude_unset=True, by_alias=False)

    if "is_shared" in changes and changes["is_shared"] is not None and not viewer.is_admin:
        raise ForbiddenError(message="Only admins can share companions")

    new_name = changes.get("name")
    if new_name is not None and new_name != companion.name:
        if _name_taken(db, viewer.user_id, new_name, exclude_id=companion.id):
            raise _name_conflict()

    for field, value in changes.items():
        if field in CLEARABLE_FIELDS:
            setattr(companion, field, value or None)
        elif value is not None:
            setattr(companion, field, value)

    _commit_or_name_conflict(db)
    return companion_to_out(companion)


def delete_companion(db: Session, viewer_id: UUID, companion_id: UUID) -> None:
    """Soft-delete a companion. Conversations and messages are kept."""
    companion = get_companion_for_owner_or_404(db, viewer_id, companion_id)
    companion.is_active = False
    db.commit()
    logger.info("companion_deleted", companion_id=str(companion.id))


def list_templates() -> list[CompanionTemplateOut]:
    """Return the default companion templates."""
    return [CompanionTemplateOut.model_validate(t) for t in get_default_companion_templates()]
