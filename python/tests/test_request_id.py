"""Tests for X-Request-ID middleware.

Tests cover:
- Request ID generation when missing
- Request ID preservation when valid
- Request ID normalization (UUID lowercase)
- Request ID replacement when invalid
- Request ID presence on auth failures and in error bodies
"""

from uuid import UUID

import pytest

from kindred.middleware.request_id import (
    REQUEST_ID_HEADER,
    is_valid_request_id,
    normalize_request_id,
)


class TestRequestIdValidation:
    @pytest.mark.parametrize("value", ["abc-123", "req_1.2", str(UUID(int=5))])
    def test_valid_ids(self, value):
        assert is_valid_request_id(value)

    @pytest.mark.parametrize("value", ["has space", "semi;colon", "x" * 129, ""])
    def test_invalid_ids(self, value):
        assert not is_valid_request_id(value)

    def test_uuid_normalized_to_lowercase(self):
        assert normalize_request_id("ABCDEF00-0000-0000-0000-000000000000") == (
            "abcdef00-0000-0000-0000-000000000000"
        )


class TestRequestIdMiddleware:
    def test_generates_id_when_missing(self, client):
        response = client.get("/health")
        UUID(response.headers[REQUEST_ID_HEADER])

    def test_preserves_valid_id(self, client):
        response = client.get("/health", headers={REQUEST_ID_HEADER: "trace-42"})
        assert response.headers[REQUEST_ID_HEADER] == "trace-42"

    def test_replaces_invalid_id(self, client):
        response = client.get("/health", headers={REQUEST_ID_HEADER: "bad id!"})
        assert response.headers[REQUEST_ID_HEADER] != "bad id!"
        UUID(response.headers[REQUEST_ID_HEADER])

    def test_auth_failure_carries_request_id(self, client):
        response = client.get("/companions", headers={REQUEST_ID_HEADER: "trace-401"})

        assert response.status_code == 401
        assert response.headers[REQUEST_ID_HEADER] == "trace-401"
        assert response.json()["requestId"] == "trace-401"
