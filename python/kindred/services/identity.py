"""External identity sync service.

Keeps local User rows mirroring accounts owned by the external identity
provider:
- mirror_external_user: create or refresh the mirror from a provider profile
- sync_user / get_identity_me / update_identity_profile: route-backed operations
- verify_webhook_signature / handle_webhook_event: provider webhook intake

Mirrored users get the id external_user_id(external_id), so records the
guard keyed by that id before the mirror existed still belong to them.
"""

import base64
import binascii
import hashlib
import hmac
import time
from collections.abc import Mapping
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from kindred.auth.middleware import Viewer
from kindred.auth.provider import (
    ExternalProfile,
    IdentityProvider,
    external_user_id,
    parse_external_profile,
)
from kindred.db.models import User, UserRole, utcnow
from kindred.errors import ApiError, ApiErrorCode, ConflictError, NotFoundError
from kindred.logging import get_logger
from kindred.schemas.user import (
    ExternalProfileOut,
    IdentityMeOut,
    IdentityProfileRequest,
    UserOut,
)
from kindred.services.seeder import ensure_default_companions
from kindred.services.users import normalize_email, user_to_out

logger = get_logger(__name__)

# Webhook timestamps outside this window are rejected (seconds)
WEBHOOK_TOLERANCE_S = 5 * 60

WEBHOOK_SECRET_PREFIX = "whsec_"

NOT_SYNCED_MESSAGE = "User not found in local database. Please sync your profile first."


# =============================================================================
# Mirroring
# =============================================================================


def get_mirror(db: Session, external_id: str) -> User | None:
    return db.scalar(select(User).where(User.external_id == external_id))


def _mirror_email(profile: ExternalProfile) -> str:
    # The users table requires an email; accounts without one get a non-routable address
    if profile.email:
        return normalize_email(profile.email)
    return f"{profile.external_id}@users.invalid"


def _apply_profile(user: User, profile: ExternalProfile) -> None:
    if profile.email:
        user.email = normalize_email(profile.email)
    if profile.first_name:
        user.first_name = profile.first_name
    if profile.last_name:
        user.last_name = profile.last_name
    if profile.full_name:
        user.name = profile.display_name


def mirror_external_user(db: Session, profile: ExternalProfile) -> tuple[User, bool]:
    """Create or refresh the local mirror for an external account.

    Returns:
        Tuple of (user, created).

    Raises:
        ConflictError(E_EMAIL_TAKEN): The profile email belongs to another local account.
    """
    user = get_mirror(db, profile.external_id)
    created = user is None

    if user is None:
        user = User(
            id=external_user_id(profile.external_id),
            external_id=profile.external_id,
            name=profile.display_name,
            email=_mirror_email(profile),
            first_name=profile.first_name,
            last_name=profile.last_name,
            avatar=profile.image_url,
            role=UserRole.user.value,
            is_active=True,
            last_login=utcnow(),
        )
        db.add(user)
    else:
        _apply_profile(user, profile)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        if created:
            # A concurrent request may have mirrored the same account
            existing = get_mirror(db, profile.external_id)
            if existing is not None:
                return existing, False
        raise ConflictError(
            ApiErrorCode.E_EMAIL_TAKEN,
            "User already exists with this email",
            field="email",
        ) from None

    if created:
        logger.info("identity_user_mirrored", user_id=str(user.id))
    return user, created


def _seed_new_mirror(db: Session, user: User) -> None:
    created = ensure_default_companions(db, user.id)
    logger.info("identity_user_seeded", user_id=str(user.id), companions=len(created))


def _require_mirror(db: Session, viewer: Viewer) -> User:
    user = get_mirror(db, viewer.external_id) if viewer.external_id else None
    if user is None:
        raise NotFoundError(ApiErrorCode.E_USER_NOT_FOUND, NOT_SYNCED_MESSAGE)
    return user


# =============================================================================
# Service Functions
# =============================================================================


def sync_user(db: Session, viewer: Viewer, provider: IdentityProvider) -> UserOut:
    """Create or refresh the viewer's mirror from the live provider profile."""
    profile = provider.get_profile(viewer.external_id)
    user, created = mirror_external_user(db, profile)

    user.last_login = utcnow()
    db.commit()

    if created:
        _seed_new_mirror(db, user)

    return user_to_out(user)


def get_identity_me(db: Session, viewer: Viewer, provider: IdentityProvider) -> IdentityMeOut:
    """Local mirror plus live provider data.

    Raises:
        NotFoundError(E_USER_NOT_FOUND): No local mirror yet.
    """
    user = _require_mirror(db, viewer)
    profile = provider.get_profile(viewer.external_id)

    return IdentityMeOut(
        user=user_to_out(user),
        external_id=viewer.external_id,
        profile=ExternalProfileOut(
            image_url=profile.image_url,
            email_verified=profile.email_verified,
            last_sign_in_at=profile.last_sign_in_at,
        ),
    )


def update_identity_profile(
    db: Session, viewer: Viewer, req: IdentityProfileRequest
) -> UserOut:
    """Update local-only profile fields of the viewer's mirror."""
    user = _require_mirror(db, viewer)

    for field, value in req.model_dump(exclude_unset=True, by_alias=False).items():
        if value is not None:
            setattr(user, field, value)
    user.last_login = utcnow()

    db.commit()
    return user_to_out(user)


# =============================================================================
# Webhooks
# =============================================================================


def _webhook_invalid(message: str) -> ApiError:
    return ApiError(ApiErrorCode.E_WEBHOOK_INVALID, message)


def _decode_secret(secret: str) -> bytes:
    if secret.startswith(WEBHOOK_SECRET_PREFIX):
        secret = secret[len(WEBHOOK_SECRET_PREFIX) :]
    try:
        return base64.b64decode(secret)
    except (binascii.Error, ValueError):
        return secret.encode()


def verify_webhook_signature(
    secret: str,
    headers: Mapping[str, str],
    body: bytes,
    *,
    now: float | None = None,
) -> None:
    """Verify Svix-style webhook signature headers.

    Signed content is "{svix-id}.{svix-timestamp}.{body}", HMAC-SHA256 with
    the base64 part of the "whsec_" secret. The svix-signature header holds
    space separated "v1,<base64>" entries; any match is accepted.

    Raises:
        ApiError(E_WEBHOOK_INVALID): Missing headers, stale timestamp, or no matching signature.
    """
    msg_id = headers.get("svix-id")
    timestamp = headers.get("svix-timestamp")
    signature_header = headers.get("svix-signature")
    if not msg_id or not timestamp or not signature_header:
        raise _webhook_invalid("Missing webhook signature headers")

    try:
        sent_at = int(timestamp)
    except ValueError:
        raise _webhook_invalid("Invalid webhook timestamp") from None

    current = time.time() if now is None else now
    if abs(current - sent_at) > WEBHOOK_TOLERANCE_S:
        raise _webhook_invalid("Webhook timestamp outside tolerance")

    signed = f"{msg_id}.{timestamp}.".encode() + body
    expected = base64.b64encode(
        hmac.new(_decode_secret(secret), signed, hashlib.sha256).digest()
    ).decode()

    for entry in signature_header.split():
        version, _, signature = entry.partition(",")
        if version == "v1" and hmac.compare_digest(signature, expected):
            return

    logger.warning("webhook_signature_mismatch")
    raise _webhook_invalid("Invalid webhook signature")


def _deactivate_mirror(db: Session, external_id: str) -> bool:
    user = get_mirror(db, external_id)
    if user is None:
        return False
    user.is_active = False
    user.deleted_at = utcnow()
    db.commit()
    return True


def handle_webhook_event(db: Session, event: dict[str, Any]) -> str:
    """Apply one identity provider webhook event to the local mirror.

    - user.created: mirror the account and seed default companions
    - user.updated: refresh an existing mirror
    - user.deleted: deactivate the mirror
    - anything else: acknowledged without changes

    Returns:
        The event type.

    Raises:
        ApiError(E_WEBHOOK_INVALID): Event payload is malformed.
    """
    event_type = event.get("type")
    data = event.get("data")
    if not isinstance(event_type, str) or not isinstance(data, dict):
        raise _webhook_invalid("Invalid webhook payload")

    if event_type in ("user.created", "user.updated"):
        try:
            profile = parse_external_profile(data)
        except ValueError:
            raise _webhook_invalid("Invalid webhook payload") from None

        if event_type == "user.created":
            user, created = mirror_external_user(db, profile)
            if created:
                _seed_new_mirror(db, user)
        elif get_mirror(db, profile.external_id) is not None:
            mirror_external_user(db, profile)

    elif event_type == "user.deleted":
        external_id = data.get("id")
        if not external_id:
            raise _webhook_invalid("Invalid webhook payload")
        _deactivate_mirror(db, str(external_id))

    else:
        logger.info("webhook_event_ignored", event_type=event_type)
        return event_type

    logger.info("webhook_event_processed", event_type=event_type)
    return event_type
