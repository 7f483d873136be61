"""API error definitions.

All API errors are defined here with their corresponding HTTP status codes.
"""

from enum import Enum


class ApiErrorCode(str, Enum):
    """Standardized error codes for the API.

    Format: E_CATEGORY_NAME
    """

    # Authentication errors (401)
    E_UNAUTHENTICATED = "E_UNAUTHENTICATED"
    E_INVALID_CREDENTIALS = "E_INVALID_CREDENTIALS"

    # Authorization errors (403)
    E_FORBIDDEN = "E_FORBIDDEN"

    # Not found errors (404)
    E_NOT_FOUND = "E_NOT_FOUND"
    E_USER_NOT_FOUND = "E_USER_NOT_FOUND"
    E_COMPANION_NOT_FOUND = "E_COMPANION_NOT_FOUND"
    E_CONVERSATION_NOT_FOUND = "E_CONVERSATION_NOT_FOUND"

    # Validation and conflict errors (400)
    E_INVALID_REQUEST = "E_INVALID_REQUEST"
    E_EMAIL_TAKEN = "E_EMAIL_TAKEN"
    E_NAME_CONFLICT = "E_NAME_CONFLICT"
    E_WEBHOOK_INVALID = "E_WEBHOOK_INVALID"

    # Server errors
    E_PROVIDER_ERROR = "E_PROVIDER_ERROR"  # 500
    E_PROVIDER_NOT_CONFIGURED = "E_PROVIDER_NOT_CONFIGURED"  # 500
    E_AUTH_UNAVAILABLE = "E_AUTH_UNAVAILABLE"  # 503
    E_INTERNAL = "E_INTERNAL"  # 500


# Error code to HTTP status mapping
ERROR_CODE_TO_STATUS: dict[ApiErrorCode, int] = {
    ApiErrorCode.E_UNAUTHENTICATED: 401,
    ApiErrorCode.E_INVALID_CREDENTIALS: 401,
    ApiErrorCode.E_FORBIDDEN: 403,
    ApiErrorCode.E_NOT_FOUND: 404,
    ApiErrorCode.E_USER_NOT_FOUND: 404,
    ApiErrorCode.E_COMPANION_NOT_FOUND: 404,
    ApiErrorCode.E_CONVERSATION_NOT_FOUND: 404,
    ApiErrorCode.E_INVALID_REQUEST: 400,
    ApiErrorCode.E_EMAIL_TAKEN: 400,
    ApiErrorCode.E_NAME_CONFLICT: 400,
    ApiErrorCode.E_WEBHOOK_INVALID: 400,
    ApiErrorCode.E_PROVIDER_ERROR: 500,
    ApiErrorCode.E_PROVIDER_NOT_CONFIGURED: 500,
    ApiErrorCode.E_AUTH_UNAVAILABLE: 503,
    ApiErrorCode.E_INTERNAL: 500,
}


class ApiError(Exception):
    """Base exception for API errors.

    Attributes:
        code: The error code enum value
        message: Human-readable error message
        status_code: HTTP status code (derived from code)
        errors: Optional field-tagged details ({"field": ..., "message": ...})
    """

    def __init__(
        self,
        code: ApiErrorCode,
        message: str,
        errors: list[dict[str, str]] | None = None,
    ):
        self.code = code
        self.message = message
        self.errors = errors
        self.status_code = ERROR_CODE_TO_STATUS.get(code, 500)
        super().__init__(message)


class UnauthorizedError(ApiError):
    """Missing, invalid or expired credential."""

    def __init__(
        self,
        code: ApiErrorCode = ApiErrorCode.E_UNAUTHENTICATED,
        message: str = "Authentication required",
    ):
        super().__init__(code, message)


class NotFoundError(ApiError):
    """Resource not found error."""

    def __init__(self, code: ApiErrorCode = ApiErrorCode.E_NOT_FOUND, message: str = "Not found"):
        super().__init__(code, message)


class ForbiddenError(ApiError):
    """Authorization failure error."""

    def __init__(self, code: ApiErrorCode = ApiErrorCode.E_FORBIDDEN, message: str = "Forbidden"):
        super().__init__(code, message)


class ConflictError(ApiError):
    """Unique constraint violation (duplicate email, duplicate companion name)."""

    def __init__(self, code: ApiErrorCode, message: str, field: str | None = None):
        errors = [{"field": field, "message": message}] if field else None
        super().__init__(code, message, errors)


class ProviderError(ApiError):
    """The model provider call failed or returned an unusable response."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(ApiErrorCode.E_PROVIDER_ERROR, f"{provider} error: {message}")


class ConfigError(ApiError):
    """No credential configured for the requested provider."""

    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(
            ApiErrorCode.E_PROVIDER_NOT_CONFIGURED,
            f"No API keys configured for {provider}. "
            "Please set the provider API key in the environment.",
        )
