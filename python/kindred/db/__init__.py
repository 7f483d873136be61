"""Database module for Kindred.

Provides engine creation, session management, transaction helpers, and ORM models.
"""

from kindred.db.engine import create_db_engine
from kindred.db.models import (
    Base,
    Companion,
    CompanionType,
    Conversation,
    Message,
    User,
    UserRole,
    utcnow,
)
from kindred.db.session import create_session_factory, get_db, transaction

__all__ = [
    # Engine and session
    "create_db_engine",
    "create_session_factory",
    "get_db",
    "transaction",
    # Base
    "Base",
    "utcnow",
    # Enums
    "UserRole",
    "CompanionType",
    # Models
    "User",
    "Companion",
    "Conversation",
    "Message",
]
