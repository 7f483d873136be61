"""Local account authentication routes.

Register and login are public; me and logout use the local-token guard.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from kindred.api.deps import get_db, get_token_codec
from kindred.auth.middleware import Viewer, get_viewer
from kindred.auth.tokens import LocalTokenCodec
from kindred.responses import success_response
from kindred.schemas.user import LoginRequest, RegisterRequest
from kindred.services import users as users_service

router = APIRouter(prefix="/auth")


@router.post("/register", status_code=201)
def register(
    body: RegisterRequest,
    db: Annotated[Session, Depends(get_db)],
    tokens: Annotated[LocalTokenCodec, Depends(get_token_codec)],
) -> dict:
    """Create a local account.

    Errors:
        E_INVALID_REQUEST (400): Invalid name, email, or password.
        E_EMAIL_TAKEN (400): Email already registered.
    """
    result = users_service.register_user(db, body, tokens)
    return success_response(
        result.model_dump(mode="json"), message="User registered successfully"
    )


@router.post("/login")
def login(
    body: LoginRequest,
    db: Annotated[Session, Depends(get_db)],
    tokens: Annotated[LocalTokenCodec, Depends(get_token_codec)],
) -> dict:
    """Exchange email and password for a token.

    Errors:
        E_INVALID_CREDENTIALS (401): Any credential mismatch.
    """
    result = users_service.login_user(db, body.email, body.password, tokens)
    return success_response(result.model_dump(mode="json"), message="Login successful")


@router.get("/me")
def me(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    user = users_service.get_profile(db, viewer.user_id)
    return success_response({"user": user.model_dump(mode="json")})


@router.post("/logout")
def logout(viewer: Annotated[Viewer, Depends(get_viewer)]) -> dict:
    """Tokens are stateless; the client discards its copy."""
    return success_response(message="Logged out successfully")
