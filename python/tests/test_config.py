"""Tests for application configuration."""

import pytest
from pydantic import ValidationError

from hundrednet.config import MIN_PRODUCTION_SECRET_LENGTH, Environment, Settings, get_settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep identity settings from the outer environment out of these tests."""
    for name in ("HUNDREDNET_ENV", "JWT_SECRET", "JWKS_URL", "JWT_ISSUER", "JWT_AUDIENCES"):
        monkeypatch.delenv(name, raising=False)


def _make_settings(**overrides) -> Settings:
    """Build a Settings instance with test defaults + overrides."""
    defaults = {
        "DATABASE_URL": "postgresql+psycopg://localhost/test",
        "HUNDREDNET_ENV": "test",
        "JWT_SECRET": "x" * MIN_PRODUCTION_SECRET_LENGTH,
    }
    defaults.update(overrides)
    return Settings(**defaults)


class TestIdentitySettings:
    """A token verifier must be buildable from the settings."""

    def test_shared_secret_only(self):
        s = _make_settings()

        assert s.jwt_secret == "x" * MIN_PRODUCTION_SECRET_LENGTH
        assert s.jwks_url is None

    def test_jwks_only(self):
        s = _make_settings(JWT_SECRET=None, JWKS_URL="https://id.example/jwks.json")

        assert s.jwks_url == "https://id.example/jwks.json"

    def test_neither_rejected(self):
        with pytest.raises(ValidationError, match="JWT_SECRET"):
            _make_settings(JWT_SECRET=None)

    def test_short_secret_allowed_locally(self):
        s = _make_settings(HUNDREDNET_ENV="local", JWT_SECRET="short")

        assert s.hundrednet_env == Environment.LOCAL

    @pytest.mark.parametrize("env", ["staging", "prod"])
    def test_short_secret_rejected_in_deployed_envs(self, env):
        with pytest.raises(ValidationError, match="at least"):
            _make_settings(HUNDREDNET_ENV=env, JWT_SECRET="short")

    def test_unknown_environment_rejected(self):
        with pytest.raises(ValidationError):
            _make_settings(HUNDREDNET_ENV="qa")


class TestDerivedSettings:
    """Tests for parsed convenience properties."""

    def test_audience_list(self):
        s = _make_settings(JWT_AUDIENCES=" messaging, ,web ")

        assert s.audience_list == ["messaging", "web"]

    def test_audience_list_empty(self):
        assert _make_settings().audience_list == []

    def test_normalized_issuer(self):
        s = _make_settings(JWT_ISSUER="https://id.example/")

        assert s.normalized_issuer == "https://id.example"

    def test_defaults(self):
        s = _make_settings()

        assert s.db_pool_size == 5
        assert s.log_json is True
        assert s.normalized_issuer is None


class TestGetSettings:
    """get_settings reads the environment once and caches the result."""

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "sqlite:///cached.db")
        monkeypatch.setenv("JWT_SECRET", "from-env")

        first = get_settings()

        assert first.jwt_secret == "from-env"
        assert get_settings() is first
