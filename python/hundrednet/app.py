"""FastAPI application creation and configuration.

This module creates and configures the FastAPI application instance.
It registers exception handlers, auth middleware, request-id middleware, and routes.

Token Verification:
- JWT_SECRET set: SharedSecretVerifier (HS256, identity service tokens)
- Otherwise: JwksVerifier against JWKS_URL

Database Lifecycle:
- The engine and session factory are created in the lifespan and stored on
  app.state; the engine is disposed at shutdown
- Tests may pass a ready session factory, which the app then uses as-is

Middleware Ordering (Critical):
- Middleware runs in reverse order of registration
- RequestIDMiddleware is added LAST so it runs FIRST (outermost)
- This ensures all requests (including auth failures) get X-Request-ID
"""

import json
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from starlette.exceptions import HTTPException as StarletteHTTPException

from hundrednet.api.routes import create_api_router
from hundrednet.auth.middleware import AuthMiddleware
from hundrednet.auth.verifier import JwksVerifier, SharedSecretVerifier, TokenVerifier
from hundrednet.config import get_settings
from hundrednet.db.engine import create_db_engine
from hundrednet.db.session import create_session_factory
from hundrednet.errors import ApiError, ApiErrorCode
from hundrednet.logging import get_logger
from hundrednet.middleware.request_id import RequestIDMiddleware
from hundrednet.responses import (
    api_error_handler,
    error_response,
    http_exception_handler,
    storage_exception_handler,
    unhandled_exception_handler,
)

logger = get_logger(__name__)


def create_token_verifier() -> TokenVerifier:
    """Create the token verifier from settings.

    A shared secret takes precedence over a JWKS URL.
    """
    settings = get_settings()

    if settings.jwt_secret:
        return SharedSecretVerifier(
            secret=settings.jwt_secret,
            issuer=settings.normalized_issuer,
            audiences=settings.audience_list,
        )

    return JwksVerifier(
        jwks_url=settings.jwks_url,  # type: ignore[arg-type]
        issuer=settings.normalized_issuer,
        audiences=settings.audience_list,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Own the database engine for the lifetime of the app.

    Skipped when a session factory was injected by create_app.
    """
    if getattr(app.state, "session_factory", None) is not None:
        yield
        return

    settings = get_settings()
    engine = create_db_engine(settings.database_url, pool_size=settings.db_pool_size)
    app.state.session_factory = create_session_factory(engine)
    logger.info("db_engine_created", dialect=engine.dialect.name)

    try:
        yield
    finally:
        engine.dispose()
        app.state.session_factory = None
        logger.info("db_engine_disposed")


def create_app(
    skip_auth_middleware: bool = False,
    token_verifier: TokenVerifier | None = None,
    session_factory: sessionmaker[Session] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        skip_auth_middleware: If True, skip adding auth middleware (for testing).
        token_verifier: Optional custom token verifier (for testing).
        session_factory: Optional session factory; when given the lifespan
            does not create (or dispose) an engine.

    Returns:
        Configured FastAPI application instance.
    """
    app = FastAPI(
        title="Hundrednet Messaging API",
        description="Direct and group messaging for the Hundrednet job board",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.session_factory = session_factory

    # Register exception handlers
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(SQLAlchemyError, storage_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle request validation errors (bad UUIDs, bodies, query params)."""
        return JSONResponse(
            status_code=400,
            content=error_response(ApiErrorCode.E_INVALID_REQUEST, "Invalid request"),
        )

    @app.middleware("http")
    async def catch_json_decode_errors(request: Request, call_next):
        """Reject malformed JSON bodies before they reach route handlers."""
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
        verifier = token_verifier or create_token_verifier()
        app.add_middleware(AuthMiddleware, verifier=verifier)
        logger.info("auth_middleware_enabled", verifier=type(verifier).__name__)

    return app


def add_request_id_middleware(app: FastAPI, log_requests: bool = True) -> None:
    """Add request-id middleware to the app.

    This should be called AFTER all other middleware is added, so it runs FIRST.
    This ensures every response includes X-Request-ID, including auth failures.
    """
    app.add_middleware(RequestIDMiddleware, log_requests=log_requests)
    logger.info("request_id_middleware_enabled")
