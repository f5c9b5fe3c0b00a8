"""Unit tests for application settings."""

import pytest
from pydantic import SecretStr, ValidationError

from credrotate.config.settings import PasswordPolicy, Settings, get_settings


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> pytest.MonkeyPatch:
    """Run from an empty directory so no .env file is read."""
    monkeypatch.chdir(tmp_path)
    for name in ("ENVIRONMENT", "LOG_LEVEL", "LOG_JSON", "ADMIN_DATABASE_URL", "AWS_REGION"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self, clean_env):
        """Test default values."""
        settings = Settings()

        assert settings.environment == "development"
        assert settings.log_level == "INFO"
        assert settings.admin_database_url is None
        assert settings.database_driver == "postgresql+asyncpg"
        assert settings.connection_test_attempts == 3
        assert settings.password_policy == PasswordPolicy()

    def test_from_environment(self, clean_env):
        """Test values are read from environment variables."""
        clean_env.setenv("ENVIRONMENT", "production")
        clean_env.setenv("ADMIN_DATABASE_URL", "postgresql+asyncpg://admin:pw@db/postgres")
        clean_env.setenv("PASSWORD_POLICY__LENGTH", "48")
        clean_env.setenv("PASSWORD_POLICY__EXCLUDE_CHARACTERS", "/@")

        settings = Settings()

        assert settings.environment == "production"
        assert settings.admin_database_url.get_secret_value().endswith("@db/postgres")
        assert settings.password_policy.length == 48
        assert settings.password_policy.exclude_characters == "/@"

    def test_admin_url_is_secret(self):
        """Test the admin URL is not exposed by repr."""
        settings = Settings(admin_database_url=SecretStr("postgresql://admin:hunter2@db/postgres"))

        assert "hunter2" not in repr(settings)

    def test_invalid_attempts(self):
        """Test at least one connection attempt is required."""
        with pytest.raises(ValidationError):
            Settings(connection_test_attempts=0)

    @pytest.mark.parametrize(
        ("environment", "log_json", "expected"),
        [
            ("production", None, True),
            ("development", None, False),
            ("production", False, False),
            ("test", True, True),
        ],
    )
    def test_use_json_logs(self, environment, log_json, expected):
        """Test JSON logs default on in production and can be overridden."""
        settings = Settings(environment=environment, log_json=log_json)

        assert settings.use_json_logs is expected


class TestPasswordPolicy:
    """Tests for PasswordPolicy."""

    def test_defaults_exclude_quoting_characters(self):
        """Test the default exclusions cover URL and SQL delimiters."""
        policy = PasswordPolicy()

        assert policy.length == 32
        for char in "/@\"'\\:%":
            assert char in policy.exclude_characters

    @pytest.mark.parametrize("length", [7, 129])
    def test_length_bounds(self, length):
        """Test lengths outside 8..128 are rejected."""
        with pytest.raises(ValidationError):
            PasswordPolicy(length=length)


class TestGetSettings:
    """Tests for get_settings."""

    def test_is_cached(self, clean_env):
        """Test the same instance is returned."""
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()
