"""Business logic services.

This module contains service-layer functions that implement business logic.
Services are called by route handlers and orchestrate database operations.
"""

from kindred.services.seeder import ensure_default_companions
from kindred.services.users import register_user

__all__ = [
    "ensure_default_companions",
    "register_user",
]
