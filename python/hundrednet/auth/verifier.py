"""Token verification implementations.

Provides:
- TokenVerifier: Protocol for token verification
- SharedSecretVerifier: HS256 tokens signed with the identity service's shared secret
- JwksVerifier: RS256/ES256 tokens whose keys are published at a JWKS URL
- user_id_from_claims: Extract the caller's user id from verified claims
"""

import threading
from typing import Any, Protocol
from uuid import UUID

import jwt
from jwt import PyJWKClient
from jwt.exceptions import (
    DecodeError,
    ExpiredSignatureError,
    InvalidAudienceError,
    InvalidIssuerError,
    InvalidSignatureError,
    InvalidTokenError,
    PyJWKClientError,
)

from hundrednet.errors import ApiError, ApiErrorCode
from hundrednet.logging import get_logger

logger = get_logger(__name__)

# Clock skew allowance in seconds
CLOCK_SKEW_SECONDS = 60

# Claims that may carry the caller's user id, in lookup order
USER_ID_CLAIMS = ("userId", "sub")


class TokenVerifier(Protocol):
    """Protocol for token verification.

    Implementations must verify JWT tokens and return decoded claims.
    """

    def verify(self, token: str) -> dict[str, Any]:
        """Verify token and return decoded claims.

        Raises:
            ApiError(E_UNAUTHENTICATED): Token is invalid, expired, or malformed.
            ApiError(E_AUTH_UNAVAILABLE): Infrastructure failure (JWKS unreachable).
        """
        ...


def user_id_from_claims(claims: dict[str, Any]) -> UUID:
    """Return the caller's user id from verified claims.

    The identity service puts it in ``userId``; standard issuers use ``sub``.

    Raises:
        ApiError(E_UNAUTHENTICATED): No user id claim, or it is not a UUID.
    """
    raw = next((claims[name] for name in USER_ID_CLAIMS if claims.get(name)), None)
    if raw is None:
        logger.warning("auth_failure", reason="missing_user_id")
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Invalid token: missing user id")

    try:
        return UUID(str(raw))
    except ValueError as e:
        logger.warning("auth_failure", reason="invalid_user_id")
        raise ApiError(
            ApiErrorCode.E_UNAUTHENTICATED, "Invalid token: user id is not a valid UUID"
        ) from e


def _decode(token: str, key: Any, algorithms: list[str], **kwargs: Any) -> dict[str, Any]:
    """Decode a JWT and map PyJWT failures to E_UNAUTHENTICATED."""
    try:
        return jwt.decode(token, key, algorithms=algorithms, leeway=CLOCK_SKEW_SECONDS, **kwargs)
    except ExpiredSignatureError as e:
        logger.warning("auth_failure", reason="expired_token")
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Token expired") from e
    except InvalidSignatureError as e:
        logger.warning("auth_failure", reason="invalid_signature")
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Invalid token signature") from e
    except InvalidIssuerError as e:
        logger.warning("auth_failure", reason="invalid_issuer")
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Invalid token issuer") from e
    except InvalidAudienceError as e:
        logger.warning("auth_failure", reason="invalid_audience")
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Invalid token audience") from e
    except DecodeError as e:
        logger.warning("auth_failure", reason="decode_error", error=str(e))
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Invalid token format") from e
    except InvalidTokenError as e:
        logger.warning("auth_failure", reason="invalid_token", error=str(e))
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Invalid token") from e


class SharedSecretVerifier:
    """Token verifier for HS256 tokens signed with a shared secret.

    Validates:
    - Signature with the configured secret (HS256 only)
    - exp (when present) with a 60s clock skew
    - iss, when an issuer is configured
    - aud, when audiences are configured
    - a UUID user id in ``userId`` or ``sub``
    """

    def __init__(
        self,
        secret: str,
        issuer: str | None = None,
        audiences: list[str] | None = None,
    ):
        self.secret = secret
        self.issuer = issuer.rstrip("/") if issuer else None
        self.audiences = audiences or []

    def verify(self, token: str) -> dict[str, Any]:
        """Verify an HS256 token and return its claims."""
        payload = _decode(
            token,
            self.secret,
            ["HS256"],
            audience=self.audiences or None,
            issuer=self.issuer,
            options={"verify_aud": bool(self.audiences)},
        )
        user_id_from_claims(payload)
        return payload


class JwksVerifier:
    """Token verifier for RS256/ES256 tokens using a JWKS endpoint.

    Validates:
    - Signature via JWKS (the key is chosen by the token's kid)
    - exp with a 60s clock skew
    - iss, when an issuer is configured
    - aud, when audiences are configured
    - a UUID user id in ``userId`` or ``sub``
    """

    def __init__(
        self,
        jwks_url: str,
        issuer: str | None = None,
        audiences: list[str] | None = None,
        cache_ttl: int = 3600,  # 1 hour
    ):
        self.jwks_url = jwks_url
        self.issuer = issuer.rstrip("/") if issuer else None
        self.audiences = audiences or []
        self.cache_ttl = cache_ttl

        self._jwks_client: PyJWKClient | None = None
        self._jwks_lock = threading.Lock()

    def _new_client(self) -> PyJWKClient:
        return PyJWKClient(self.jwks_url, cache_keys=True, lifespan=self.cache_ttl)

    def _get_jwks_client(self) -> PyJWKClient:
        with self._jwks_lock:
            if self._jwks_client is None:
                self._jwks_client = self._new_client()
            return self._jwks_client

    def _refresh_jwks(self) -> None:
        """Replace the client so the next lookup refetches the key set."""
        with self._jwks_lock:
            self._jwks_client = self._new_client()

    def verify(self, token: str) -> dict[str, Any]:
        """Verify a JWKS-signed token and return its claims."""
        try:
            signing_key = self._get_signing_key(token)
        except PyJWKClientError as e:
            logger.warning("auth_failure", reason="jwks_unavailable", error=str(e))
            raise ApiError(
                ApiErrorCode.E_AUTH_UNAVAILABLE,
                "Authentication service unavailable",
            ) from e

        payload = _decode(
            token,
            signing_key.key,
            ["RS256", "ES256"],
            audience=self.audiences or None,
            issuer=self.issuer,
            options={"require": ["exp"], "verify_aud": bool(self.audiences)},
        )
        user_id_from_claims(payload)
        return payload

    def _get_signing_key(self, token: str) -> Any:
        """Get the signing key for the token, refreshing once on a kid miss.

        Raises:
            PyJWKClientError: If the JWKS fetch fails.
            ApiError(E_UNAUTHENTICATED): If the kid is unknown after a refresh.
        """
        try:
            return self._get_jwks_client().get_signing_key_from_jwt(token)
        except DecodeError as e:
            logger.warning("auth_failure", reason="decode_error", error=str(e))
            raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Invalid token format") from e
        except PyJWKClientError as e:
            if "Unable to find" not in str(e) and "kid" not in str(e).lower():
                raise

        logger.info("jwks_refresh", reason="kid_miss")
        self._refresh_jwks()
        try:
            return self._get_jwks_client().get_signing_key_from_jwt(token)
        except PyJWKClientError as e:
            logger.warning("auth_failure", reason="kid_not_found")
            raise ApiError(
                ApiErrorCode.E_UNAUTHENTICATED,
                "Invalid token: signing key not found",
            ) from e
