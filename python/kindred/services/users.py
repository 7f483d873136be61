"""User account service layer.

Registration, login, profile reads/updates and admin account management
for locally authenticated users.

Service functions correspond 1:1 with route handlers.
Routes are transport-only and call exactly one service function.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from kindred.auth.tokens import LocalTokenCodec
from kindred.db.models import User, UserRole, utcnow
from kindred.db.session import transaction
from kindred.errors import ApiErrorCode, ConflictError, NotFoundError, UnauthorizedError
from kindred.logging import get_logger
from kindred.schemas.user import AuthResult, RegisterRequest, UpdateProfileRequest, UserOut
from kindred.services.passwords import hash_password, verify_password

logger = get_logger(__name__)

EMAIL_TAKEN_MESSAGE = "User already exists with this email"
INVALID_CREDENTIALS_MESSAGE = "Invalid credentials"


# =============================================================================
# Helper Functions
# =============================================================================


def normalize_email(email: str) -> str:
    return email.strip().lower()


def user_to_out(user: User) -> UserOut:
    """Convert User ORM model to UserOut schema."""
    return UserOut.model_validate(user)


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.scalar(select(User).where(User.email == normalize_email(email)))


def get_active_user_or_404(db: Session, user_id: UUID) -> User:
    """Load an active user.

    Raises:
        NotFoundError(E_USER_NOT_FOUND): Missing or deactivated.
    """
    user = db.get(User, user_id)
    if user is None or not user.is_active:
        raise NotFoundError(ApiErrorCode.E_USER_NOT_FOUND, "User not found")
    return user


def _email_conflict() -> ConflictError:
    return ConflictError(ApiErrorCode.E_EMAIL_TAKEN, EMAIL_TAKEN_MESSAGE, field="email")


# =============================================================================
# Service Functions
# =============================================================================


def register_user(db: Session, req: RegisterRequest, tokens: LocalTokenCodec) -> AuthResult:
    """Create a local account and issue a token for it.

    Raises:
        ConflictError(E_EMAIL_TAKEN): Email already used by any account.
    """
    email = normalize_email(req.email)
    if get_user_by_email(db, email) is not None:
        raise _email_conflict()

    user = User(
        name=req.name,
        email=email,
        password_hash=hash_password(req.password),
        role=UserRole.user.value,
        is_active=True,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # Concurrent registration with the same email won the unique index
        db.rollback()
        raise _email_conflict() from None

    logger.info("user_registered", user_id=str(user.id))
    return AuthResult(token=tokens.issue(user.id), user=user_to_out(user))


def login_user(db: Session, email: str, password: str, tokens: LocalTokenCodec) -> AuthResult:
    """Check credentials and issue a token.

    Every failure (unknown email, wrong password, deactivated account,
    account without a local password) yields the same error.

    Raises:
        UnauthorizedError(E_INVALID_CREDENTIALS)
    """
    user = get_user_by_email(db, email)
    if user is None or not user.is_active or not verify_password(password, user.password_hash):
        logger.info("login_failed")
        raise UnauthorizedError(ApiErrorCode.E_INVALID_CREDENTIALS, INVALID_CREDENTIALS_MESSAGE)

    user.last_login = utcnow()
    db.commit()

    logger.info("user_logged_in", user_id=str(user.id))
    return AuthResult(token=tokens.issue(user.id), user=user_to_out(user))


def get_profile(db: Session, viewer_id: UUID) -> UserOut:
    """Return the viewer's own account."""
    return user_to_out(get_active_user_or_404(db, viewer_id))


def update_profile(db: Session, viewer_id: UUID, req: UpdateProfileRequest) -> UserOut:
    """Apply a partial profile update.

    Raises:
        ConflictError(E_EMAIL_TAKEN): New email belongs to another account.
    """
    user = get_active_user_or_404(db, viewer_id)
    changes = req.model_dump(exclude_unset=True, by_alias=False)

    if changes.get("name") is not None:
        user.name = changes["name"]

    if changes.get("email") is not None:
        email = normalize_email(changes["email"])
        if email != user.email:
            other = get_user_by_email(db, email)
            if other is not None and other.id != user.id:
                raise _email_conflict()
            user.email = email

    if "avatar" in changes:
        user.avatar = changes["avatar"] or None

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise _email_conflict() from None

    return user_to_out(user)


def list_users(db: Session, include_inactive: bool = False) -> list[UserOut]:
    """List accounts, newest first (admin only)."""
    query = select(User).order_by(User.created_at.desc(), User.id)
    if not include_inactive:
        query = query.where(User.is_active.is_(True))
    return [user_to_out(u) for u in db.scalars(query)]


def get_user(db: Session, user_id: UUID) -> UserOut:
    """Return any active account by id."""
    return user_to_out(get_active_user_or_404(db, user_id))


def deactivate_user(db: Session, user_id: UUID) -> UserOut:
    """Soft-deactivate an account (admin only). Records are never deleted."""
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError(ApiErrorCode.E_USER_NOT_FOUND, "User not found")

    if user.is_active:
        with transaction(db):
            user.is_active = False
            user.deleted_at = utcnow()
        logger.info("user_deactivated", target_user_id=str(user.id))

    return user_to_out(user)
