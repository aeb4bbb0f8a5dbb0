"""Tests for X-Request-ID middleware.

Tests cover:
- Request ID generation when missing
- Request ID preservation when valid
- Request ID normalization (UUID lowercase)
- Request ID replacement when invalid
- Request ID presence on auth failures
- Request ID in error response body
"""

from uuid import UUID

import pytest
from fastapi.testclient import TestClient

from hundrednet.middleware.request_id import resolve_request_id
from tests.helpers import auth_headers, create_test_user_id


class TestRequestIdMiddleware:
    """Tests for X-Request-ID middleware."""

    def test_request_id_generated_when_missing(self, client: TestClient):
        """Request ID is generated when not provided."""
        response = client.get("/conversations", headers=auth_headers(create_test_user_id()))

        assert response.status_code == 200
        UUID(response.headers["X-Request-ID"])  # Raises if invalid

    def test_request_id_preserved_when_valid(self, client: TestClient):
        """Valid non-UUID request IDs are preserved."""
        custom_id = "abc_def-123"

        response = client.get(
            "/conversations",
            headers={**auth_headers(create_test_user_id()), "X-Request-ID": custom_id},
        )

        assert response.status_code == 200
        assert response.headers["X-Request-ID"] == custom_id

    def test_request_id_uuid_normalized_to_lowercase(self, client: TestClient):
        """UUID request IDs are normalized to lowercase."""
        response = client.get(
            "/health", headers={"X-Request-ID": "550E8400-E29B-41D4-A716-446655440000"}
        )

        assert response.headers["X-Request-ID"] == "550e8400-e29b-41d4-a716-446655440000"

    def test_request_id_replaced_when_invalid(self, client: TestClient):
        """Invalid request IDs (with spaces) are replaced."""
        invalid_id = "bad id with spaces"

        response = client.get("/health", headers={"X-Request-ID": invalid_id})

        new_id = response.headers["X-Request-ID"]
        assert new_id != invalid_id
        UUID(new_id)

    def test_request_id_present_on_auth_failure(self, client: TestClient):
        """Auth failures still include X-Request-ID in the header and body."""
        response = client.get("/conversations", headers={"X-Request-ID": "trace-401"})

        assert response.status_code == 401
        assert response.headers["X-Request-ID"] == "trace-401"
        assert response.json()["error"]["request_id"] == "trace-401"

    def test_error_response_includes_request_id_in_body(self, client: TestClient):
        """Error responses raised by routes carry the same request_id as the header."""
        response = client.get(
            "/conversations/00000000-0000-0000-0000-000000000000",
            headers=auth_headers(create_test_user_id()),
        )

        assert response.status_code == 404
        data = response.json()
        assert data["error"]["request_id"] == response.headers["X-Request-ID"]

    def test_request_ids_differ_between_requests(self, client: TestClient):
        first = client.get("/health").headers["X-Request-ID"]
        second = client.get("/health").headers["X-Request-ID"]

        assert first != second


class TestResolveRequestId:
    """Tests for request ID validation edge cases."""

    @pytest.mark.parametrize(
        "incoming",
        ["request.id.with.dots", "request_id_with_underscores", "request-id-with-hyphens", "a" * 128],
    )
    def test_valid_ids_kept(self, incoming: str):
        assert resolve_request_id(incoming) == incoming

    @pytest.mark.parametrize("incoming", [None, "", "a" * 129, "semi;colon", "ünïcode"])
    def test_invalid_ids_replaced(self, incoming):
        resolved = resolve_request_id(incoming)

        assert resolved != incoming
        assert UUID(resolved).version == 4
