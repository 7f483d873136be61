"""Tests for application configuration."""

import pytest
from pydantic import ValidationError

from kindred.config import Environment, Settings

LONG_SECRET = "x" * 40


def _make_settings(**overrides) -> Settings:
    """Build a Settings instance with test defaults + overrides."""
    defaults = {
        "DATABASE_URL": "postgresql+psycopg://localhost/test",
        "KINDRED_ENV": "test",
        "JWT_SECRET": "test-secret",
        "OPENAI_API_KEY": None,
        "GEMINI_API_KEY": None,
        "CLERK_JWKS_URL": None,
        "CLERK_ISSUER": None,
        "CLERK_SECRET_KEY": None,
    }
    defaults.update(overrides)
    return Settings(**defaults)


class TestDefaults:
    def test_defaults(self):
        s = _make_settings()
        assert s.kindred_env == Environment.TEST
        assert s.jwt_expire_days == 30
        assert s.openai_model == "gpt-3.5-turbo"
        assert s.gemini_model == "gemini-1.5-flash"
        assert s.llm_timeout_s == 45
        assert s.clerk_api_url == "https://api.clerk.com/v1"
        assert s.cors_origin_list == ["*"]

    def test_database_url_required(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        with pytest.raises(ValidationError, match="DATABASE_URL"):
            Settings(JWT_SECRET="secret", _env_file=None)

    def test_empty_jwt_secret_rejected(self):
        with pytest.raises(ValidationError):
            _make_settings(JWT_SECRET="")


class TestDeploymentRequirements:
    def test_prod_requires_identity_settings(self):
        with pytest.raises(ValidationError, match="CLERK_JWKS_URL"):
            _make_settings(KINDRED_ENV="prod", JWT_SECRET=LONG_SECRET)

    def test_prod_requires_long_jwt_secret(self):
        with pytest.raises(ValidationError, match="JWT_SECRET"):
            _make_settings(
                KINDRED_ENV="prod",
                CLERK_JWKS_URL="https://clerk.example/.well-known/jwks.json",
                CLERK_ISSUER="https://clerk.example",
                CLERK_SECRET_KEY="sk_live_x",
            )

    def test_prod_accepts_complete_settings(self):
        s = _make_settings(
            KINDRED_ENV="prod",
            JWT_SECRET=LONG_SECRET,
            CLERK_JWKS_URL="https://clerk.example/.well-known/jwks.json",
            CLERK_ISSUER="https://clerk.example/",
            CLERK_SECRET_KEY="sk_live_x",
        )
        assert s.identity_provider_configured
        assert s.normalized_issuer == "https://clerk.example"

    def test_local_env_does_not_require_identity_settings(self):
        s = _make_settings(KINDRED_ENV="local")
        assert not s.identity_provider_configured


class TestProviderLookup:
    def test_provider_keys_and_models(self):
        s = _make_settings(OPENAI_API_KEY="sk-1", GEMINI_MODEL="gemini-2.0-flash")
        assert s.provider_api_key("openai") == "sk-1"
        assert s.provider_api_key("gemini") is None
        assert s.provider_api_key("unknown") is None
        assert s.provider_model("gemini") == "gemini-2.0-flash"

    def test_cors_origins_parsed(self):
        s = _make_settings(CORS_ORIGINS="https://a.example, https://b.example,")
        assert s.cors_origin_list == ["https://a.example", "https://b.example"]
