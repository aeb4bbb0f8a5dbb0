"""Tests for error handling and response envelopes.

Verifies:
- Error envelope shape is correct
- Every error code maps to correct HTTP status
- Database failures return E_STORAGE_ERROR with 503 and no driver text
- Unknown exceptions return E_INTERNAL with 500
- Malformed JSON returns E_INVALID_REQUEST
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from hundrednet.errors import (
    ERROR_CODE_TO_STATUS,
    ApiError,
    ApiErrorCode,
    ForbiddenError,
    InvalidRequestError,
    NotFoundError,
    StorageError,
)
from hundrednet.responses import (
    error_response,
    storage_exception_handler,
    success_response,
    unhandled_exception_handler,
)
from tests.helpers import auth_headers, create_test_user_id


class TestErrorResponse:
    """Tests for error response envelope format."""

    def test_error_response_has_correct_shape(self):
        """Error response contains error object with code and message."""
        response = error_response(ApiErrorCode.E_CONVERSATION_NOT_FOUND, "Conversation not found")

        assert response == {
            "error": {"code": "E_CONVERSATION_NOT_FOUND", "message": "Conversation not found"}
        }

    def test_error_response_code_is_string(self):
        """Error code in response is a string, not enum."""
        response = error_response(ApiErrorCode.E_NOT_PARTICIPANT, "Not a participant")

        assert type(response["error"]["code"]) is str

    def test_explicit_request_id(self):
        response = error_response(ApiErrorCode.E_INTERNAL, "boom", request_id="req-1")

        assert response["error"]["request_id"] == "req-1"


class TestSuccessResponse:
    """Tests for success response envelope format."""

    def test_success_response_has_data_key(self):
        assert success_response({"id": "123"}) == {"data": {"id": "123"}}

    def test_success_response_with_list(self):
        items = [{"id": "1"}, {"id": "2"}]

        assert success_response(items)["data"] == items


class TestErrorCodeToStatus:
    """Tests for error code to HTTP status mapping."""

    def test_all_error_codes_have_status_mapping(self):
        """Every ApiErrorCode has a corresponding HTTP status."""
        for code in ApiErrorCode:
            assert code in ERROR_CODE_TO_STATUS, f"Missing status mapping for {code}"

    @pytest.mark.parametrize(
        "code,expected_status",
        [
            (ApiErrorCode.E_UNAUTHENTICATED, 401),
            (ApiErrorCode.E_FORBIDDEN, 403),
            (ApiErrorCode.E_NOT_PARTICIPANT, 403),
            (ApiErrorCode.E_NOT_FOUND, 404),
            (ApiErrorCode.E_CONVERSATION_NOT_FOUND, 404),
            (ApiErrorCode.E_USER_NOT_FOUND, 404),
            (ApiErrorCode.E_INVALID_REQUEST, 400),
            (ApiErrorCode.E_NAME_INVALID, 400),
            (ApiErrorCode.E_SELF_CONVERSATION, 400),
            (ApiErrorCode.E_GROUP_TOO_SMALL, 400),
            (ApiErrorCode.E_MESSAGE_EMPTY, 400),
            (ApiErrorCode.E_MESSAGE_TOO_LONG, 400),
            (ApiErrorCode.E_INVALID_PAGINATION, 400),
            (ApiErrorCode.E_AUTH_UNAVAILABLE, 503),
            (ApiErrorCode.E_STORAGE_ERROR, 503),
            (ApiErrorCode.E_INTERNAL, 500),
        ],
    )
    def test_error_code_maps_to_correct_status(self, code: ApiErrorCode, expected_status: int):
        """Each error code maps to the expected HTTP status."""
        assert ERROR_CODE_TO_STATUS[code] == expected_status


class TestApiErrorClass:
    """Tests for ApiError exception classes."""

    def test_api_error_has_code_and_message(self):
        error = ApiError(ApiErrorCode.E_USER_NOT_FOUND, "User not found")

        assert error.code == ApiErrorCode.E_USER_NOT_FOUND
        assert error.message == "User not found"
        assert error.status_code == 404

    def test_not_found_error_defaults(self):
        error = NotFoundError()

        assert error.code == ApiErrorCode.E_NOT_FOUND
        assert error.status_code == 404

    def test_forbidden_error_defaults(self):
        error = ForbiddenError()

        assert error.code == ApiErrorCode.E_FORBIDDEN
        assert error.status_code == 403

    def test_invalid_request_error_defaults(self):
        error = InvalidRequestError()

        assert error.code == ApiErrorCode.E_INVALID_REQUEST
        assert error.status_code == 400

    def test_storage_error_is_generic(self):
        """StorageError always carries E_STORAGE_ERROR and a generic message."""
        error = StorageError()

        assert error.code == ApiErrorCode.E_STORAGE_ERROR
        assert error.status_code == 503
        assert "unavailable" in error.message.lower()


class TestMalformedJsonHandling:
    """Tests for malformed JSON body handling."""

    def test_malformed_json_returns_400(self, client: TestClient):
        """Malformed JSON body returns 400 with E_INVALID_REQUEST."""
        response = client.post(
            "/conversations",
            content="{invalid json",
            headers={**auth_headers(create_test_user_id()), "content-type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "E_INVALID_REQUEST"

    def test_wrong_body_shape_returns_400(self, client: TestClient):
        """Schema validation failures use the same 400 envelope (never 422)."""
        response = client.post(
            "/conversations",
            json={"type": "one_on_one"},
            headers=auth_headers(create_test_user_id()),
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "E_INVALID_REQUEST"

    def test_unknown_route_returns_404_envelope(self, client: TestClient):
        response = client.get("/nope", headers=auth_headers(create_test_user_id()))

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "E_NOT_FOUND"


class TestStorageExceptionHandling:
    """Database errors that escape a service become E_STORAGE_ERROR."""

    @pytest.fixture
    def storage_client(self) -> TestClient:
        test_app = FastAPI()

        @test_app.get("/db")
        def db_endpoint():
            raise OperationalError(
                "SELECT 1", {}, Exception("SECRET_DRIVER_DETAIL: connection refused")
            )

        test_app.add_exception_handler(SQLAlchemyError, storage_exception_handler)
        return TestClient(test_app, raise_server_exceptions=False)

    def test_returns_503_with_storage_code(self, storage_client: TestClient):
        response = storage_client.get("/db")

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "E_STORAGE_ERROR"

    def test_does_not_leak_driver_message(self, storage_client: TestClient):
        response = storage_client.get("/db")

        assert "SECRET_DRIVER_DETAIL" not in response.text
        assert "SELECT" not in response.text


class TestUnhandledExceptionHandling:
    """Tests for unhandled exception handling."""

    def test_unhandled_exception_returns_500_with_e_internal(self):
        """Unhandled exceptions return 500 with E_INTERNAL code."""
        test_app = FastAPI()

        @test_app.get("/crash")
        def crash_endpoint():
            raise RuntimeError("Unexpected error")

        test_app.add_exception_handler(Exception, unhandled_exception_handler)

        client = TestClient(test_app, raise_server_exceptions=False)
        response = client.get("/crash")

        assert response.status_code == 500
        data = response.json()
        assert data["error"]["code"] == "E_INTERNAL"
        assert "Internal server error" in data["error"]["message"]

    def test_unhandled_exception_does_not_leak_details(self):
        """Unhandled exceptions do not leak stack traces or details."""
        test_app = FastAPI()

        @test_app.get("/crash")
        def crash_endpoint():
            raise RuntimeError("SECRET_INTERNAL_DETAIL")

        test_app.add_exception_handler(Exception, unhandled_exception_handler)

        client = TestClient(test_app, raise_server_exceptions=False)
        response = client.get("/crash")

        assert "SECRET_INTERNAL_DETAIL" not in response.text
