"""FastAPI application creation and configuration.

This module creates and configures the FastAPI application instance.
It registers exception handlers, CORS, auth middleware, request-id
middleware, and routes.

Configuration:
- Settings are loaded once (or passed in) and stored on app.state
- The engine, session factory, token codec, identity provider and LLM
  router are built from that one settings object

Middleware Ordering (Critical):
- Middleware runs in reverse order of registration
- RequestIDMiddleware is added LAST so it runs FIRST (outermost)
- CORS runs outside auth so preflight and error responses carry CORS headers

Actual execution order per request:
1. RequestIDMiddleware (sets request_id, starts timer)
2. CORSMiddleware
3. AuthMiddleware (runs the guard wired to the path, sets viewer)
4. Malformed JSON check
5. Route handler

LLM Client Lifecycle:
- httpx.AsyncClient is created at startup, stored in app.state
- LLMRouter wraps the shared client for connection pooling
- Client is closed gracefully at shutdown
"""

import json
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine
from starlette.exceptions import HTTPException as StarletteHTTPException

from kindred.api.routes import create_api_router
from kindred.auth.guards import ExternalIdentityGuard, LocalTokenGuard
from kindred.auth.middleware import AuthMiddleware, Viewer
from kindred.auth.provider import ClerkIdentityProvider, IdentityProvider
from kindred.auth.tokens import LocalTokenCodec
from kindred.config import Settings, get_settings
from kindred.db.engine import create_db_engine
from kindred.db.session import create_session_factory
from kindred.errors import ApiError, ApiErrorCode
from kindred.logging import configure_logging, get_logger
from kindred.middleware.request_id import RequestIDMiddleware
from kindred.responses import (
    api_error_handler,
    error_response,
    http_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from kindred.services.llm import LLMRouter

# Configure structured logging at import time
configure_logging()

logger = get_logger(__name__)


def create_identity_provider(settings: Settings) -> IdentityProvider | None:
    """Build the Clerk-backed provider, or None when it is not configured."""
    if not settings.identity_provider_configured:
        return None

    return ClerkIdentityProvider(
        jwks_url=settings.clerk_jwks_url,  # type: ignore[arg-type]
        issuer=settings.normalized_issuer,  # type: ignore[arg-type]
        secret_key=settings.clerk_secret_key,
        api_url=settings.clerk_api_url,
    )


def _identity_unavailable(token: str) -> Viewer:
    raise ApiError(ApiErrorCode.E_AUTH_UNAVAILABLE, "Identity provider not configured")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle resources.

    - Creates shared httpx.AsyncClient for connection pooling
    - Initializes LLMRouter
    - Cleans up on shutdown
    """
    app.state.httpx_client = httpx.AsyncClient(
        timeout=httpx.Timeout(60.0, connect=10.0),
        limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
    )
    app.state.llm_router = LLMRouter(app.state.httpx_client)

    settings: Settings = app.state.settings
    logger.info(
        "llm_router_initialized",
        providers=app.state.llm_router.providers,
        openai_configured=bool(settings.openai_api_key),
        gemini_configured=bool(settings.gemini_api_key),
    )

    yield

    await app.state.httpx_client.aclose()
    logger.info("httpx_client_closed")


def create_app(
    settings: Settings | None = None,
    *,
    engine: Engine | None = None,
    identity_provider: IdentityProvider | None = None,
    skip_auth_middleware: bool = False,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Application settings (loaded from the environment if None).
        engine: Optional SQLAlchemy engine (for testing).
        identity_provider: Optional external identity provider (for testing).
        skip_auth_middleware: If True, skip adding auth middleware (for testing).

    Returns:
        Configured FastAPI application instance.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Kindred API",
        description="Backend API for Kindred - AI companion chat",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    engine = engine or create_db_engine(settings.database_url)
    session_factory = create_session_factory(engine)
    token_codec = LocalTokenCodec(settings.jwt_secret, expire_days=settings.jwt_expire_days)
    identity_provider = identity_provider or create_identity_provider(settings)

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.token_codec = token_codec
    app.state.identity_provider = identity_provider

    # Register exception handlers
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # Handle JSON decode errors from malformed JSON bodies
    @app.middleware("http")
    async def catch_json_decode_errors(request: Request, call_next):
        """Catch JSON decode errors before they reach route handlers."""
        if request.method in ("POST", "PUT", "PATCH"):
            content_type = request.headers.get("content-type", "")
            if "application/json" in content_type:
                body = await request.body()
                if body:
                    try:
                        json.loads(body)
                    except json.JSONDecodeError:
                        return JSONResponse(
                            status_code=400,
                            content=error_response(
                                ApiErrorCode.E_INVALID_REQUEST, "Malformed JSON body"
                            ),
                        )
        return await call_next(request)

    app.include_router(create_api_router())

    if not skip_auth_middleware:
        external_guard = (
            ExternalIdentityGuard(identity_provider, session_factory)
            if identity_provider is not None
            else _identity_unavailable
        )
        app.add_middleware(
            AuthMiddleware,
            local_guard=LocalTokenGuard(token_codec, session_factory),
            external_guard=external_guard,
        )
        logger.info(
            "auth_middleware_enabled",
            env=settings.kindred_env.value,
            identity_provider_configured=identity_provider is not None,
        )

    origins = settings.cors_origin_list
    allow_any = not origins or "*" in origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_any else origins,
        allow_credentials=not allow_any,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
    )

    logger.info("cors_configured", origins=origins or ["*"])

    return app


def add_request_id_middleware(app: FastAPI, log_requests: bool = True) -> None:
    """Add request-id middleware to the app.

    This should be called AFTER all other middleware is added, so it runs FIRST.
    This ensures every response includes X-Request-ID, including auth failures.

    Args:
        app: The FastAPI application.
        log_requests: Whether to log access entries for each request.
    """
    app.add_middleware(RequestIDMiddleware, log_requests=log_requests)
    logger.info("request_id_middleware_enabled")
