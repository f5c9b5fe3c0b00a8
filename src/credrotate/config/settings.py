"""Application settings loaded from environment variables."""

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class PasswordPolicy(BaseModel):
    """Policy for newly generated database passwords."""

    length: int = Field(default=32, ge=8, le=128)
    """Number of characters in a generated password."""

    exclude_characters: str = "/@\"'\\:%"
    """Characters never used. Defaults avoid quoting trouble in URLs and SQL."""

    require_each_class: bool = True
    """Force at least one upper, lower, digit and punctuation character."""


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # Application Configuration
    environment: Literal["development", "staging", "production", "test"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_json: bool | None = None

    # Secret store
    aws_region: str | None = None
    secretsmanager_endpoint_url: str | None = None

    # Target database
    admin_database_url: SecretStr | None = None
    database_driver: str = "postgresql+asyncpg"
    connect_timeout_seconds: float = 10.0
    connection_test_attempts: int = Field(default=3, ge=1)
    connection_test_wait_seconds: float = 5.0

    # Invocation
    deadline_margin_seconds: float = 5.0

    password_policy: PasswordPolicy = PasswordPolicy()

    @property
    def use_json_logs(self) -> bool:
        """Whether logs should be rendered as JSON."""
        if self.log_json is not None:
            return self.log_json
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
