"""PostgreSQL target resource.

Rotates the password of a single PostgreSQL role: passwords are applied
through an administrative connection and verified by logging in with the
pending credentials.
"""

import logging

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from credrotate.config.settings import PasswordPolicy, Settings
from credrotate.secrets.exceptions import GenerationFailedError
from credrotate.secrets.generation import generate_password
from credrotate.secrets.types import DatabaseCredentials
from credrotate.utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

MAX_GENERATION_ATTEMPTS = 10


class PostgresCredentialTarget:
    """Target resource for DatabaseCredentials envelopes on PostgreSQL.

    Example:
        target = PostgresCredentialTarget("postgresql+asyncpg://admin:...@db/postgres")
        await target.set_secret(pending_credentials)
        await target.try_connection(pending_credentials)
        await target.close()
    """

    def __init__(
        self,
        admin_url: str,
        *,
        driver: str = "postgresql+asyncpg",
        password_policy: PasswordPolicy | None = None,
        connect_timeout_seconds: float = 10.0,
        connection_test_attempts: int = 3,
        connection_test_wait_seconds: float = 5.0,
    ):
        """Initialize the target.

        Args:
            admin_url: URL of a role allowed to ALTER the rotated role
            driver: SQLAlchemy driver used for verification connections
            password_policy: Policy for generated passwords
            connect_timeout_seconds: Timeout for each connection attempt
            connection_test_attempts: Login attempts before verification fails
            connection_test_wait_seconds: Pause between login attempts
        """
        self.driver = driver
        self.password_policy = password_policy or PasswordPolicy()
        self.connect_timeout_seconds = connect_timeout_seconds
        self.connection_test_attempts = connection_test_attempts
        self.connection_test_wait_seconds = connection_test_wait_seconds
        self._admin_url = admin_url
        self._admin_engine: AsyncEngine | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "PostgresCredentialTarget":
        """Create a target from application settings.

        Raises:
            ConfigurationError: If no administrative database URL is configured
        """
        if settings.admin_database_url is None:
            raise ConfigurationError("ADMIN_DATABASE_URL is required to rotate database passwords")
        return cls(
            settings.admin_database_url.get_secret_value(),
            driver=settings.database_driver,
            password_policy=settings.password_policy,
            connect_timeout_seconds=settings.connect_timeout_seconds,
            connection_test_attempts=settings.connection_test_attempts,
            connection_test_wait_seconds=settings.connection_test_wait_seconds,
        )

    def _create_engine(self, url: str) -> AsyncEngine:
        # One-shot invocations: no pooled connections outlive a step
        return create_async_engine(
            url,
            poolclass=NullPool,
            connect_args={"timeout": self.connect_timeout_seconds},
        )

    @property
    def admin_engine(self) -> AsyncEngine:
        """Engine for the administrative connection (created lazily)."""
        if self._admin_engine is None:
            self._admin_engine = self._create_engine(self._admin_url)
        return self._admin_engine

    async def generate_secret(self, envelope: DatabaseCredentials) -> None:
        """Replace the envelope's password with a new one.

        Raises:
            GenerationFailedError: If the policy keeps producing the old password
        """
        previous = envelope.password
        for _ in range(MAX_GENERATION_ATTEMPTS):
            password = generate_password(
                self.password_policy.length,
                self.password_policy.exclude_characters,
                self.password_policy.require_each_class,
            )
            if password != previous:
                envelope.password = password
                return
        raise GenerationFailedError(
            f"Password policy produced no new password for {envelope.user} "
            f"in {MAX_GENERATION_ATTEMPTS} attempts"
        )

    async def set_secret(self, envelope: DatabaseCredentials) -> None:
        """Set the role's password to the envelope's password."""
        engine = self.admin_engine
        statement = alter_role_statement(engine, envelope.user, envelope.password)

        async with engine.begin() as conn:
            await conn.exec_driver_sql(statement)
        logger.info(f"Applied new password for role {envelope.user} on {envelope.host}")

    async def try_connection(self, envelope: DatabaseCredentials) -> None:
        """Log in with the envelope's credentials and run ``SELECT 1``.

        Retries cover the delay before a new password is accepted.
        """
        engine = self._create_engine(envelope.to_url(self.driver))
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.connection_test_attempts),
                wait=wait_fixed(self.connection_test_wait_seconds),
                retry=retry_if_exception_type((SQLAlchemyError, OSError)),
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
            ):
                with attempt:
                    async with engine.connect() as conn:
                        await conn.execute(text("SELECT 1"))
        finally:
            await engine.dispose()
        logger.info(f"Verified login for role {envelope.user} on {envelope.host}")

    async def close(self) -> None:
        """Dispose the administrative engine."""
        if self._admin_engine is not None:
            await self._admin_engine.dispose()
            self._admin_engine = None


def alter_role_statement(engine: AsyncEngine, role: str, password: str) -> str:
    """Build ``ALTER ROLE`` for a password change.

    The role is quoted with the dialect's identifier rules and the
    password is emitted as an escaped string literal. Utility statements
    cannot take bound parameters.
    """
    quoted_role = engine.dialect.identifier_preparer.quote_identifier(role)
    literal = password.replace("'", "''")
    return f"ALTER ROLE {quoted_role} WITH PASSWORD '{literal}'"
