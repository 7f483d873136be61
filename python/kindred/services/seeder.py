"""Default companion seeding.

Every newly provisioned account gets three free companions. Seeding is
idempotent: a user who already has any active companion is left alone,
and a concurrent seed that loses the race on the (owner, name) index
backs off instead of duplicating.
"""

import logging
from dataclasses import asdict, dataclass
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from kindred.db.models import Companion, CompanionType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompanionTemplate:
    """Fields of a default companion, minus the owner."""

    name: str
    description: str
    personality: str
    avatar: str
    category: str
    instructions: str
    seed: str
    type: str = CompanionType.free.value


DEFAULT_COMPANIONS: tuple[CompanionTemplate, ...] = (
    CompanionTemplate(
        name="Alex",
        description=(
            "A helpful and knowledgeable assistant who loves to help with daily tasks "
            "and answer questions."
        ),
        personality=(
            "Friendly, patient, and always eager to help. Alex has a warm personality and "
            "enjoys learning about new topics. Alex is professional but approachable, and "
            "always tries to provide clear and helpful responses."
        ),
        avatar=(
            "https://images.unsplash.com/photo-1507003211169-0a1dd7228f2d"
            "?w=400&h=400&fit=crop&crop=face"
        ),
        category="General Assistant",
        instructions=(
            "Be helpful, friendly, and professional. Always try to provide accurate "
            "information and ask clarifying questions when needed. Keep responses clear "
            "and concise while being thorough."
        ),
        seed=(
            "Hello! I'm Alex, your helpful assistant. I'm here to help you with any "
            "questions or tasks you might have. How can I assist you today?"
        ),
    ),
    CompanionTemplate(
        name="Luna",
        description=(
            "A creative and imaginative companion who specializes in storytelling, "
            "creative writing, and artistic inspiration."
        ),
        personality=(
            "Creative, imaginative, and inspiring. Luna has an artistic soul and loves to "
            "explore creative possibilities. She's encouraging and helps bring out the "
            "creative potential in others."
        ),
        avatar=(
            "https://images.unsplash.com/photo-1494790108755-2616b612b786"
            "?w=400&h=400&fit=crop&crop=face"
        ),
        category="Creative Arts",
        instructions=(
            "Focus on creativity, imagination, and artistic expression. Encourage creative "
            "thinking and provide inspiring ideas. Help with writing, brainstorming, and "
            "creative projects."
        ),
        seed=(
            "Hey there! I'm Luna, your creative companion. I love exploring the world of "
            "imagination and creativity. Whether you want to write a story, brainstorm "
            "ideas, or just chat about art, I'm here for you!"
        ),
    ),
    CompanionTemplate(
        name="Marcus",
        description=(
            "A motivational coach and wellness companion focused on personal development, "
            "goal-setting, and maintaining a positive mindset."
        ),
        personality=(
            "Motivational, positive, and supportive. Marcus is like a personal coach who "
            "believes in your potential and helps you stay focused on your goals. He's "
            "energetic and always ready to provide encouragement."
        ),
        avatar=(
            "https://images.unsplash.com/photo-1472099645785-5658abf4ff4e"
            "?w=400&h=400&fit=crop&crop=face"
        ),
        category="Personal Development",
        instructions=(
            "Be motivational and supportive. Help with goal-setting, productivity, and "
            "maintaining a positive mindset. Provide encouragement and practical advice "
            "for personal growth."
        ),
        seed=(
            "What's up! I'm Marcus, your personal development coach. I'm here to help you "
            "crush your goals and become the best version of yourself. What are you "
            "working on today?"
        ),
    ),
)


def get_default_companion_templates() -> list[CompanionTemplate]:
    """Return the default companion templates."""
    return list(DEFAULT_COMPANIONS)


def _active_companion_count(db: Session, user_id: UUID, *, free_only: bool = False) -> int:
    query = (
        select(func.count())
        .select_from(Companion)
        .where(Companion.user_id == user_id, Companion.is_active.is_(True))
    )
    if free_only:
        query = query.where(Companion.type == CompanionType.free.value)
    return db.scalar(query) or 0


def ensure_default_companions(db: Session, user_id: UUID) -> list[Companion]:
    """Seed the default companions for a user who has none.

    Args:
        db: Database session.
        user_id: Owner of the new companions.

    Returns:
        The companions created by this call (empty if nothing was written).
    """
    if _active_companion_count(db, user_id) > 0:
        logger.info("User %s already has companions, skipping default creation", user_id)
        return []

    companions = [Companion(user_id=user_id, **asdict(t)) for t in DEFAULT_COMPANIONS]
    db.add_all(companions)
    try:
        db.commit()
    except IntegrityError:
        # Lost race: a concurrent request seeded the same names first
        db.rollback()
        logger.info("Default companions for user %s were created concurrently", user_id)
        return []

    logger.info("Created %d default companions for user %s", len(companions), user_id)
    return companions


def user_has_default_companions(db: Session, user_id: UUID) -> bool:
    """Whether the user still has the full set of free companions."""
    return _active_companion_count(db, user_id, free_only=True) >= len(DEFAULT_COMPANIONS)
