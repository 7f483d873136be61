"""Application settings loaded from environment variables.

Environment Configuration:
    KINDRED_ENV: Deployment environment (local | test | staging | prod)
    DATABASE_URL: PostgreSQL connection string (required)
    JWT_SECRET: Signing secret for locally issued tokens (required)
    JWT_EXPIRE_DAYS: Lifetime of locally issued tokens in days (default 30)

External Identity Configuration (required in staging/prod):
    CLERK_JWKS_URL: Full URL to the identity provider JWKS endpoint
    CLERK_ISSUER: Expected JWT issuer (trailing slash stripped)
    CLERK_SECRET_KEY: Backend API key used to fetch user profiles
    CLERK_API_URL: Backend API base URL
    CLERK_WEBHOOK_SECRET: Signing secret for webhook deliveries (optional)

Model Provider Configuration (optional):
    OPENAI_API_KEY / OPENAI_MODEL
    GEMINI_API_KEY / GEMINI_MODEL
    LLM_TIMEOUT_S: Provider request timeout in seconds

A missing provider key only disables that provider for chat requests.
"""

from enum import Enum
from functools import lru_cache
from typing import Annotated

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

MIN_PRODUCTION_SECRET_LENGTH = 32


class Environment(str, Enum):
    """Valid deployment environments."""

    LOCAL = "local"
    TEST = "test"
    STAGING = "staging"
    PROD = "prod"


class Settings(BaseSettings):
    """Application configuration.

    Constructed once by the application factory and handed to every
    component that needs it.
    """

    kindred_env: Environment = Field(default=Environment.LOCAL, alias="KINDRED_ENV")
    database_url: Annotated[str, Field(alias="DATABASE_URL")]

    # Locally issued tokens
    jwt_secret: Annotated[str, Field(alias="JWT_SECRET", min_length=1)]
    jwt_expire_days: int = Field(default=30, alias="JWT_EXPIRE_DAYS", ge=1)

    # External identity provider
    clerk_jwks_url: str | None = Field(default=None, alias="CLERK_JWKS_URL")
    clerk_issuer: str | None = Field(default=None, alias="CLERK_ISSUER")
    clerk_secret_key: str | None = Field(default=None, alias="CLERK_SECRET_KEY")
    clerk_api_url: str = Field(default="https://api.clerk.com/v1", alias="CLERK_API_URL")
    clerk_webhook_secret: str | None = Field(default=None, alias="CLERK_WEBHOOK_SECRET")

    # Model providers
    openai_api_key: str | None = Field(default=None, alias="OPENAI_API_KEY")
    openai_model: str = Field(default="gpt-3.5-turbo", alias="OPENAI_MODEL")
    gemini_api_key: str | None = Field(default=None, alias="GEMINI_API_KEY")
    gemini_model: str = Field(default="gemini-1.5-flash", alias="GEMINI_MODEL")
    llm_timeout_s: int = Field(default=45, alias="LLM_TIMEOUT_S", ge=1)

    # Comma-separated list, "*" allows any origin
    cors_origins: str = Field(default="*", alias="CORS_ORIGINS")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "populate_by_name": True,
    }

    @model_validator(mode="after")
    def validate_required_settings(self) -> "Settings":
        """Enforce deployment-only requirements."""
        if self.kindred_env in (Environment.STAGING, Environment.PROD):
            missing = []
            if not self.clerk_jwks_url:
                missing.append("CLERK_JWKS_URL")
            if not self.clerk_issuer:
                missing.append("CLERK_ISSUER")
            if not self.clerk_secret_key:
                missing.append("CLERK_SECRET_KEY")
            if missing:
                raise ValueError(
                    f"Missing required identity settings for KINDRED_ENV="
                    f"{self.kindred_env.value}: {', '.join(missing)}"
                )
            if len(self.jwt_secret) < MIN_PRODUCTION_SECRET_LENGTH:
                raise ValueError(
                    f"JWT_SECRET must be at least {MIN_PRODUCTION_SECRET_LENGTH} characters "
                    f"for KINDRED_ENV={self.kindred_env.value}"
                )

        return self

    @property
    def normalized_issuer(self) -> str | None:
        """Return issuer with trailing slash stripped."""
        if self.clerk_issuer:
            return self.clerk_issuer.rstrip("/")
        return None

    @property
    def identity_provider_configured(self) -> bool:
        """Whether the external identity provider can verify tokens."""
        return bool(self.clerk_jwks_url and self.clerk_issuer)

    @property
    def cors_origin_list(self) -> list[str]:
        """Parse comma-separated origins into a list."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def provider_api_key(self, provider: str) -> str | None:
        """Return the configured API key for a model provider, if any."""
        return {
            "openai": self.openai_api_key,
            "gemini": self.gemini_api_key,
        }.get(provider)

    def provider_model(self, provider: str) -> str:
        """Return the configured model name for a model provider."""
        return {
            "openai": self.openai_model,
            "gemini": self.gemini_model,
        }[provider]


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Only the process entrypoint uses this; everything else receives the
    settings object it was constructed with.

    Raises:
        ValidationError: If required settings are missing or invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    get_settings.cache_clear()
