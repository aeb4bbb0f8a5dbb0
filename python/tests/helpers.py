"""Test helpers for authentication and common test operations.

Provides:
- Token minting for test authentication (HS256, shared secret)
- Header generation for test requests
"""

import time
from uuid import UUID, uuid4

import jwt

TEST_JWT_SECRET = "test-shared-secret-for-messaging-tests-0123456789"
DEFAULT_EXPIRES_IN = 3600  # 1 hour


def mint_test_token(
    user_id: UUID | str,
    expires_in: int = DEFAULT_EXPIRES_IN,
    secret: str = TEST_JWT_SECRET,
    user_id_claim: str = "userId",
    **extra_claims,
) -> str:
    """Mint a valid HS256 test token.

    Args:
        user_id: The user ID, stored under ``user_id_claim``.
        expires_in: Token validity in seconds from now (negative for expired).
        secret: Signing secret.
        user_id_claim: "userId" (identity service) or "sub".
        **extra_claims: Additional claims to include in the token.
    """
    now = int(time.time())
    payload = {
        user_id_claim: str(user_id),
        "iat": now,
        "exp": now + expires_in,
        **extra_claims,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def auth_headers(user_id: UUID | str, **token_kwargs) -> dict[str, str]:
    """Build an Authorization header for the user."""
    return {"Authorization": f"Bearer {mint_test_token(user_id, **token_kwargs)}"}


def create_test_user_id() -> UUID:
    """Generate a random user id (no profile row)."""
    return uuid4()
