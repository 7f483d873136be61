"""FastAPI dependencies for route handlers.

Everything here reads objects the application factory placed on
app.state; nothing looks at the environment.
"""

from fastapi import Request

from kindred.auth.provider import IdentityProvider
from kindred.auth.tokens import LocalTokenCodec
from kindred.config import Settings
from kindred.db.session import get_db
from kindred.errors import ApiError, ApiErrorCode
from kindred.services.llm import LLMRouter

__all__ = [
    "get_db",
    "get_identity_provider",
    "get_llm_router",
    "get_settings_dep",
    "get_token_codec",
]


def get_llm_router(request: Request) -> LLMRouter:
    """Get the shared LLMRouter created in the app lifespan."""
    return request.app.state.llm_router


def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


def get_token_codec(request: Request) -> LocalTokenCodec:
    return request.app.state.token_codec


def get_identity_provider(request: Request) -> IdentityProvider:
    """Get the configured external identity provider.

    Raises:
        ApiError(E_AUTH_UNAVAILABLE): No provider configured for this deployment.
    """
    provider = getattr(request.app.state, "identity_provider", None)
    if provider is None:
        raise ApiError(ApiErrorCode.E_AUTH_UNAVAILABLE, "Identity provider not configured")
    return provider
