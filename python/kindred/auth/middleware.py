"""Authentication middleware for FastAPI.

Provides:
- AuthMiddleware: Global middleware wiring each path to one of two guards
- get_viewer: Dependency for accessing authenticated viewer identity
- require_admin: Dependency rejecting non-admin viewers

Path wiring:
- Public: health, docs, registration, login, identity webhook
- Local-token guard: /auth/*, /users/*
- External-identity guard: everything else
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal
from uuid import UUID

from fastapi import Depends, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from kindred.errors import ApiError, ApiErrorCode, ForbiddenError
from kindred.responses import error_response

logger = logging.getLogger(__name__)

# Header names
AUTHORIZATION_HEADER = "authorization"

# Paths that don't require authentication
PUBLIC_PATHS = {
    "/health",
    "/docs",
    "/redoc",
    "/openapi.json",
    "/auth/register",
    "/auth/login",
    "/identity/webhook",
}

# Path prefixes guarded by locally issued tokens
LOCAL_TOKEN_PREFIXES = ("/auth", "/users")


@dataclass
class Viewer:
    """Authenticated viewer identity.

    Attributes:
        user_id: Local user id (ownership key for all records).
        role: "user" or "admin".
        auth_source: Which guard authenticated the request.
        external_id: External identity subject, for externally authenticated viewers.
    """

    user_id: UUID
    role: str = "user"
    auth_source: Literal["local", "external"] = "local"
    external_id: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


Guard = Callable[[str], Viewer]


def _matches_prefix(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix + "/")


def guard_kind_for_path(path: str) -> Literal["public", "local", "external"]:
    """Classify a request path by the guard it is wired to."""
    if path in PUBLIC_PATHS:
        return "public"
    if any(_matches_prefix(path, prefix) for prefix in LOCAL_TOKEN_PREFIXES):
        return "local"
    return "external"


class AuthMiddleware(BaseHTTPMiddleware):
    """Authentication middleware for FastAPI.

    Order of checks:
    1. Skip if public path (or CORS preflight)
    2. Extract and parse bearer token
    3. Run the guard wired to the path (DB work runs in the threadpool)
    4. Attach Viewer to request state
    """

    def __init__(
        self,
        app: ASGIApp,
        local_guard: Guard,
        external_guard: Guard,
    ):
        """Initialize the auth middleware.

        Args:
            app: The ASGI application.
            local_guard: Token -> Viewer for locally issued tokens.
            external_guard: Token -> Viewer for external identity tokens.
        """
        super().__init__(app)
        self.guards: dict[str, Guard] = {
            "local": local_guard,
            "external": external_guard,
        }

    async def dispatch(self, request: Request, call_next) -> JSONResponse:
        """Process the request through auth checks."""
        kind = guard_kind_for_path(request.url.path)
        if kind == "public" or request.method == "OPTIONS":
            return await call_next(request)

        token, error_response_obj = self._extract_bearer_token(request)
        if error_response_obj:
            return error_response_obj

        try:
            viewer = await run_in_threadpool(self.guards[kind], token)
        except ApiError as e:
            return self._error_json_response(e.code, e.message, e.status_code)
        except Exception:
            logger.exception("Guard failed for path %s", request.url.path)
            return self._error_json_response(
                ApiErrorCode.E_INTERNAL,
                "Internal server error",
                500,
            )

        request.state.viewer = viewer

        return await call_next(request)

    def _extract_bearer_token(self, request: Request) -> tuple[str, JSONResponse | None]:
        """Extract bearer token from Authorization header.

        Returns:
            Tuple of (token, error_response). Token is empty string if error.
        """
        auth_header = request.headers.get(AUTHORIZATION_HEADER)

        if not auth_header:
            logger.warning(
                "auth_failure",
                extra={"reason": "missing_header", "request_path": request.url.path},
            )
            return "", self._error_json_response(
                ApiErrorCode.E_UNAUTHENTICATED,
                "No token provided",
                401,
            )

        # Check for Bearer prefix (case-insensitive)
        if not auth_header.lower().startswith("bearer "):
            logger.warning(
                "auth_failure",
                extra={"reason": "invalid_header_format", "request_path": request.url.path},
            )
            return "", self._error_json_response(
                ApiErrorCode.E_UNAUTHENTICATED,
                "Invalid authorization header format",
                401,
            )

        token = auth_header[7:].strip()

        if not token:
            logger.warning(
                "auth_failure",
                extra={"reason": "empty_token", "request_path": request.url.path},
            )
            return "", self._error_json_response(
                ApiErrorCode.E_UNAUTHENTICATED,
                "No token provided",
                401,
            )

        return token, None

    def _error_json_response(
        self, code: ApiErrorCode, message: str, status_code: int
    ) -> JSONResponse:
        """Create a JSON error response."""
        return JSONResponse(
            status_code=status_code,
            content=error_response(code, message),
        )


def get_viewer(request: Request) -> Viewer:
    """FastAPI dependency to get the authenticated viewer.

    Raises:
        ApiError: If viewer is not set (middleware didn't run or path is public).
    """
    viewer = getattr(request.state, "viewer", None)
    if viewer is None:
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Authentication required")
    return viewer


def require_admin(viewer: Viewer = Depends(get_viewer)) -> Viewer:
    """FastAPI dependency that only lets admins through."""
    if not viewer.is_admin:
        raise ForbiddenError(message="Admin access required")
    return viewer

