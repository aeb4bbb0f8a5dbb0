"""Authentication module.

This module provides:
- Token verification (shared-secret and JWKS verifiers)
- Auth middleware for FastAPI
- Request state with viewer identity
"""

from hundrednet.auth.middleware import AuthMiddleware, Viewer, get_viewer
from hundrednet.auth.verifier import JwksVerifier, SharedSecretVerifier, TokenVerifier

__all__ = [
    "AuthMiddleware",
    "JwksVerifier",
    "SharedSecretVerifier",
    "TokenVerifier",
    "Viewer",
    "get_viewer",
]
