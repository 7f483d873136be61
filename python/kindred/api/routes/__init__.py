"""API route definitions.

Uses a factory pattern so modules import without configured settings.
"""

from fastapi import APIRouter

from kindred.api.routes.auth import router as auth_router
from kindred.api.routes.chat import router as chat_router
from kindred.api.routes.companions import router as companions_router
from kindred.api.routes.health import router as health_router
from kindred.api.routes.identity import router as identity_router
from kindred.api.routes.users import router as users_router


def create_api_router() -> APIRouter:
    """Create and configure the API router with all routes registered."""
    api_router = APIRouter()
    api_router.include_router(health_router, tags=["health"])
    api_router.include_router(auth_router, tags=["auth"])
    api_router.include_router(users_router, tags=["users"])
    api_router.include_router(identity_router, tags=["identity"])
    api_router.include_router(companions_router, tags=["companions"])
    api_router.include_router(chat_router, tags=["chat"])
    return api_router


__all__ = ["create_api_router"]
