"""Guards resolving a bearer token to a Viewer.

- LocalTokenGuard: locally issued HS256 tokens, backed by the users table
- ExternalIdentityGuard: external identity provider tokens, mirroring the
  account locally on first sight

Guards are synchronous; AuthMiddleware runs them in the threadpool. Each
call opens and closes its own session.
"""

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from kindred.auth.middleware import Viewer
from kindred.auth.provider import IdentityProvider, external_user_id
from kindred.auth.tokens import LocalTokenCodec
from kindred.db.models import User
from kindred.errors import ApiError, UnauthorizedError
from kindred.logging import get_logger
from kindred.services.identity import get_mirror, mirror_external_user
from kindred.services.seeder import ensure_default_companions

logger = get_logger(__name__)


class LocalTokenGuard:
    """Accepts tokens minted by LocalTokenCodec for active users."""

    def __init__(self, codec: LocalTokenCodec, session_factory: sessionmaker[Session]):
        self.codec = codec
        self.session_factory = session_factory

    def __call__(self, token: str) -> Viewer:
        user_id = self.codec.decode(token)

        with self.session_factory() as db:
            user = db.get(User, user_id)
            if user is None:
                logger.warning("auth_failure", reason="unknown_user")
                raise UnauthorizedError(message="Invalid token")
            if not user.is_active:
                logger.warning("auth_failure", reason="user_deactivated")
                raise UnauthorizedError(message="Account is deactivated")

            return Viewer(user_id=user.id, role=user.role, auth_source="local")


class ExternalIdentityGuard:
    """Accepts tokens verified by the external identity provider.

    First sight of an external subject mirrors it into the users table and
    seeds default companions. Mirroring failures are logged and do not fail
    the request; the viewer keeps the deterministic id either way.
    """

    def __init__(self, provider: IdentityProvider, session_factory: sessionmaker[Session]):
        self.provider = provider
        self.session_factory = session_factory

    def __call__(self, token: str) -> Viewer:
        claims = self.provider.verify(token)
        external_id = str(claims["sub"])

        with self.session_factory() as db:
            user = get_mirror(db, external_id)

            if user is not None and not user.is_active:
                logger.warning("auth_failure", reason="user_deactivated")
                raise UnauthorizedError(message="Account is deactivated")

            if user is None:
                user = self._mirror_on_first_sight(db, external_id)

            if user is not None:
                return Viewer(
                    user_id=user.id,
                    role=user.role,
                    auth_source="external",
                    external_id=external_id,
                )

        return Viewer(
            user_id=external_user_id(external_id),
            auth_source="external",
            external_id=external_id,
        )

    def _mirror_on_first_sight(self, db: Session, external_id: str) -> User | None:
        try:
            profile = self.provider.get_profile(external_id)
            user, created = mirror_external_user(db, profile)
            if created:
                ensure_default_companions(db, user.id)
            return user
        except (ApiError, SQLAlchemyError) as e:
            db.rollback()
            logger.warning(
                "identity_auto_sync_failed",
                error_type=type(e).__name__,
            )
            return None
