"""Application settings loaded from environment variables.

Environment Configuration:
    HUNDREDNET_ENV: Deployment environment (local | test | staging | prod)
    DATABASE_URL: Database connection string (required)
    DB_POOL_SIZE: Connection pool size for PostgreSQL engines
    LOG_JSON: Emit JSON logs (true) or console-friendly logs (false)

Auth Configuration (one of JWT_SECRET / JWKS_URL is required):
    JWT_SECRET: Shared HS256 secret used by the identity service
    JWKS_URL: Full URL to a JWKS endpoint (RS256/ES256 tokens)
    JWT_ISSUER: Expected JWT issuer, optional (trailing slash stripped)
    JWT_AUDIENCES: Comma-separated list of allowed audiences, optional
"""

from enum import Enum
from functools import lru_cache
from typing import Annotated

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

# Minimum shared-secret length outside local/test
MIN_PRODUCTION_SECRET_LENGTH = 32


class Environment(str, Enum):
    """Valid deployment environments."""

    LOCAL = "local"
    TEST = "test"
    STAGING = "staging"
    PROD = "prod"


class Settings(BaseSettings):
    """Application configuration.

    Validation rules:
    - DATABASE_URL is always required
    - JWT_SECRET or JWKS_URL must be set
    - In staging/prod a JWT_SECRET, when used, must be at least 32 characters
    """

    hundrednet_env: Environment = Field(default=Environment.LOCAL, alias="HUNDREDNET_ENV")
    database_url: Annotated[str, Field(alias="DATABASE_URL")]
    db_pool_size: int = Field(default=5, alias="DB_POOL_SIZE")
    log_json: bool = Field(default=True, alias="LOG_JSON")

    # Identity verification
    jwt_secret: str | None = Field(default=None, alias="JWT_SECRET")
    jwks_url: str | None = Field(default=None, alias="JWKS_URL")
    jwt_issuer: str | None = Field(default=None, alias="JWT_ISSUER")
    jwt_audiences: str | None = Field(default=None, alias="JWT_AUDIENCES")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @model_validator(mode="after")
    def validate_required_settings(self) -> "Settings":
        """Ensure an identity verifier can be built for this environment."""
        if not self.jwt_secret and not self.jwks_url:
            raise ValueError(
                "Missing identity settings: set JWT_SECRET (shared secret) or JWKS_URL."
            )

        if self.hundrednet_env in (Environment.STAGING, Environment.PROD):
            if self.jwt_secret and len(self.jwt_secret) < MIN_PRODUCTION_SECRET_LENGTH:
                raise ValueError(
                    f"JWT_SECRET must be at least {MIN_PRODUCTION_SECRET_LENGTH} characters "
                    f"for HUNDREDNET_ENV={self.hundrednet_env.value}"
                )

        return self

    @property
    def audience_list(self) -> list[str]:
        """Parse comma-separated audiences into a list."""
        if self.jwt_audiences:
            return [a.strip() for a in self.jwt_audiences.split(",") if a.strip()]
        return []

    @property
    def normalized_issuer(self) -> str | None:
        """Return issuer with trailing slash stripped."""
        if self.jwt_issuer:
            return self.jwt_issuer.rstrip("/")
        return None


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If required settings are missing or invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    get_settings.cache_clear()
