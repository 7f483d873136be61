"""API response envelope helpers and exception handlers.

All API responses use a consistent envelope:
- Success: { "success": true, "message"?: "...", "data"?: ..., "count"?: n }
- Error:   { "success": false, "message": "...", "code": "E_...",
             "errors"?: [{"field": "...", "message": "..."}], "requestId"?: "..." }

The request id is included in error responses for debugging and support.
"""

from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from kindred.errors import ApiError, ApiErrorCode
from kindred.logging import get_logger, get_request_id

logger = get_logger(__name__)


def success_response(
    data: Any = None,
    *,
    message: str | None = None,
    count: int | None = None,
) -> dict[str, Any]:
    """Create a success response envelope.

    Args:
        data: The response data to wrap (omitted when None).
        message: Optional human-readable message.
        count: Optional item count for list responses.
    """
    body: dict[str, Any] = {"success": True}
    if message is not None:
        body["message"] = message
    if count is not None:
        body["count"] = count
    if data is not None:
        body["data"] = data
    return body


def error_response(
    code: ApiErrorCode,
    message: str,
    errors: list[dict[str, str]] | None = None,
    request_id: str | None = None,
) -> dict[str, Any]:
    """Create an error response envelope.

    Args:
        code: The error code enum value.
        message: Human-readable error message.
        errors: Optional field-tagged error details.
        request_id: Optional request ID (auto-populated from context if None).
    """
    if request_id is None:
        request_id = get_request_id()

    body: dict[str, Any] = {"success": False, "message": message, "code": code.value}
    if errors:
        body["errors"] = errors
    if request_id:
        body["requestId"] = request_id
    return body


def _field_from_loc(loc: tuple | list) -> str:
    """Render a pydantic error location without its source prefix."""
    parts = [str(p) for p in loc if p not in ("body", "query", "path", "header")]
    return ".".join(parts) or "body"


def validation_errors(exc: RequestValidationError) -> list[dict[str, str]]:
    """Convert request validation errors into field-tagged error entries."""
    errors = []
    for err in exc.errors():
        message = err.get("msg", "Invalid value")
        # pydantic prefixes messages raised from validators
        if message.startswith("Value error, "):
            message = message[len("Value error, ") :]
        errors.append({"field": _field_from_loc(err.get("loc", ())), "message": message})
    return errors


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    """Handle ApiError exceptions and return proper JSON response."""
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(exc.code, exc.message, exc.errors),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle request validation errors with field-tagged details."""
    return JSONResponse(
        status_code=400,
        content=error_response(
            ApiErrorCode.E_INVALID_REQUEST, "Validation failed", validation_errors(exc)
        ),
    )


async def http_exception_handler(request: Request, exc: Any) -> JSONResponse:
    """Handle FastAPI HTTPException and return proper JSON response."""
    status_to_code = {
        400: ApiErrorCode.E_INVALID_REQUEST,
        401: ApiErrorCode.E_UNAUTHENTICATED,
        403: ApiErrorCode.E_FORBIDDEN,
        404: ApiErrorCode.E_NOT_FOUND,
        405: ApiErrorCode.E_INVALID_REQUEST,
        422: ApiErrorCode.E_INVALID_REQUEST,
    }
    code = status_to_code.get(exc.status_code, ApiErrorCode.E_INTERNAL)
    message = str(exc.detail) if exc.detail else "An error occurred"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(code, message),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions and return 500 with E_INTERNAL.

    Logs the exception server-side but never leaks details to client.
    """
    logger.exception("unhandled_exception", error_type=type(exc).__name__)

    return JSONResponse(
        status_code=500,
        content=error_response(ApiErrorCode.E_INTERNAL, "Internal server error"),
    )
