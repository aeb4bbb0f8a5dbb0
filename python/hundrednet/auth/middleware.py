"""Authentication middleware for FastAPI.

Provides:
- AuthMiddleware: Global middleware for bearer token verification
- get_viewer: Dependency for accessing authenticated viewer identity
"""

from dataclasses import dataclass
from uuid import UUID

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from hundrednet.auth.verifier import TokenVerifier, user_id_from_claims
from hundrednet.errors import ApiError, ApiErrorCode
from hundrednet.logging import get_logger
from hundrednet.responses import error_response

logger = get_logger(__name__)

AUTHORIZATION_HEADER = "authorization"
BEARER_PREFIX = "bearer "

# Paths that don't require authentication
PUBLIC_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}


@dataclass
class Viewer:
    """Authenticated viewer identity.

    Attributes:
        user_id: The viewer's user ID (from the token's userId/sub claim).
    """

    user_id: UUID


class AuthMiddleware(BaseHTTPMiddleware):
    """Bearer token authentication for every non-public path.

    Order of checks:
    1. Skip if public path
    2. Extract the bearer token
    3. Verify it via the TokenVerifier
    4. Attach a Viewer to request state
    """

    def __init__(self, app: ASGIApp, verifier: TokenVerifier):
        super().__init__(app)
        self.verifier = verifier

    async def dispatch(self, request: Request, call_next) -> JSONResponse:
        """Process the request through auth checks."""
        if request.url.path in PUBLIC_PATHS:
            return await call_next(request)

        token = self._extract_bearer_token(request)
        if token is None:
            return self._error_json_response(
                ApiErrorCode.E_UNAUTHENTICATED, "Authentication required"
            )

        try:
            claims = self.verifier.verify(token)
            user_id = user_id_from_claims(claims)
        except ApiError as e:
            return self._error_json_response(e.code, e.message)

        request.state.viewer = Viewer(user_id=user_id)
        return await call_next(request)

    def _extract_bearer_token(self, request: Request) -> str | None:
        """Return the bearer token, or None if the header is missing or malformed."""
        auth_header = request.headers.get(AUTHORIZATION_HEADER)

        if not auth_header:
            logger.warning("auth_failure", reason="missing_header", request_path=request.url.path)
            return None

        if not auth_header.lower().startswith(BEARER_PREFIX):
            logger.warning(
                "auth_failure", reason="invalid_header_format", request_path=request.url.path
            )
            return None

        token = auth_header[len(BEARER_PREFIX) :].strip()
        if not token:
            logger.warning(
                "auth_failure", reason="invalid_header_format", request_path=request.url.path
            )
            return None

        return token

    def _error_json_response(self, code: ApiErrorCode, message: str) -> JSONResponse:
        error = ApiError(code, message)
        return JSONResponse(
            status_code=error.status_code,
            content=error_response(code, message),
        )


def get_viewer(request: Request) -> Viewer:
    """FastAPI dependency to get the authenticated viewer.

    Raises:
        ApiError(E_UNAUTHENTICATED): If the middleware did not attach a viewer.
    """
    viewer = getattr(request.state, "viewer", None)
    if viewer is None:
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Authentication required")
    return viewer
