"""AWS Secrets Manager store implementation.

This module adapts a boto3 ``secretsmanager`` client to the SecretStore
protocol used by the rotation steps.
"""

import asyncio
import time
from collections.abc import Callable
from typing import Any, TypeVar

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from credrotate.config.settings import Settings
from credrotate.core.logging import get_logger, log_external_call
from credrotate.secrets.exceptions import (
    SecretNotFoundError,
    SecretStoreError,
    SerializationError,
    StageConflictError,
)
from credrotate.secrets.types import SecretVersion, StagingLabel, VersionStages

logger = get_logger(__name__)

__all__ = ["AWSSecretsStore"]

T = TypeVar("T")

NOT_FOUND_CODES = frozenset({"ResourceNotFoundException"})
# Returned when RemoveFromVersionId no longer holds the label
CONFLICT_CODES = frozenset({"InvalidParameterException"})


class AWSSecretsStore:
    """Secret store backed by AWS Secrets Manager.

    boto3 is synchronous, so every call runs in the default executor and
    a cancelled step does not block the event loop.

    Example:
        store = AWSSecretsStore.from_settings(get_settings())
        current = await store.read_by_stage(arn, "AWSCURRENT")
    """

    def __init__(self, client: Any):
        """Initialize the store.

        Args:
            client: boto3 ``secretsmanager`` client
        """
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "AWSSecretsStore":
        """Create a store with a client built from settings.

        Credentials are resolved by boto3's default chain (environment,
        config files, then the execution role).
        """
        client = boto3.client(
            "secretsmanager",
            region_name=settings.aws_region,
            endpoint_url=settings.secretsmanager_endpoint_url,
        )
        return cls(client)

    async def _call(self, secret_id: str, operation: str, fn: Callable[[], T]) -> T:
        """Run a blocking client call in the executor, translating errors."""
        loop = asyncio.get_event_loop()
        start = time.perf_counter()
        try:
            result = await loop.run_in_executor(None, fn)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            self._log_call(operation, start, False, error_code=code)
            if code in NOT_FOUND_CODES:
                raise SecretNotFoundError(secret_id) from e
            raise SecretStoreError(f"{operation} failed for {secret_id}: {code}", e) from e
        except BotoCoreError as e:
            self._log_call(operation, start, False, error_type=type(e).__name__)
            raise SecretStoreError(f"{operation} failed for {secret_id}", e) from e

        self._log_call(operation, start, True)
        return result

    @staticmethod
    def _log_call(operation: str, start: float, success: bool, **kwargs: Any) -> None:
        duration_ms = (time.perf_counter() - start) * 1000
        log_external_call(logger, "secretsmanager", operation, duration_ms, success, **kwargs)

    async def read_by_stage(self, secret_id: str, stage: str) -> SecretVersion:
        try:
            response = await self._call(
                secret_id,
                "GetSecretValue",
                lambda: self._client.get_secret_value(SecretId=secret_id, VersionStage=stage),
            )
        except SecretNotFoundError as e:
            raise SecretNotFoundError(secret_id, stage=stage) from e
        return self._to_version(secret_id, response)

    async def read_by_version(
        self,
        secret_id: str,
        version_id: str,
        stage: str,
    ) -> SecretVersion:
        try:
            response = await self._call(
                secret_id,
                "GetSecretValue",
                lambda: self._client.get_secret_value(
                    SecretId=secret_id,
                    VersionId=version_id,
                    VersionStage=stage,
                ),
            )
        except SecretNotFoundError as e:
            raise SecretNotFoundError(secret_id, version_id=version_id, stage=stage) from e
        return self._to_version(secret_id, response)

    async def write_pending(self, secret_id: str, token: str, secret_string: str) -> None:
        await self._call(
            secret_id,
            "PutSecretValue",
            lambda: self._client.put_secret_value(
                SecretId=secret_id,
                ClientRequestToken=token,
                SecretString=secret_string,
                VersionStages=[StagingLabel.PENDING.value],
            ),
        )
        logger.debug("pending_version_put", secret_id=secret_id, token=token)

    async def describe_versions(self, secret_id: str) -> VersionStages:
        response = await self._call(
            secret_id,
            "DescribeSecret",
            lambda: self._client.describe_secret(SecretId=secret_id),
        )
        return {
            version_id: frozenset(stages)
            for version_id, stages in response.get("VersionIdsToStages", {}).items()
        }

    async def promote(
        self,
        secret_id: str,
        to_version_id: str,
        from_version_id: str | None,
    ) -> None:
        params: dict[str, str] = {
            "SecretId": secret_id,
            "VersionStage": StagingLabel.CURRENT.value,
            "MoveToVersionId": to_version_id,
        }
        if from_version_id is not None:
            params["RemoveFromVersionId"] = from_version_id

        try:
            await self._call(
                secret_id,
                "UpdateSecretVersionStage",
                lambda: self._client.update_secret_version_stage(**params),
            )
        except SecretStoreError as e:
            code = ""
            if isinstance(e.cause, ClientError):
                code = e.cause.response.get("Error", {}).get("Code", "")
            if code in CONFLICT_CODES:
                raise StageConflictError(
                    secret_id,
                    StagingLabel.CURRENT.value,
                    to_version_id,
                    from_version_id,
                    reason=code,
                ) from e.cause
            raise

    @staticmethod
    def _to_version(secret_id: str, response: dict[str, Any]) -> SecretVersion:
        secret_string = response.get("SecretString")
        if secret_string is None:
            raise SerializationError(f"Secret {secret_id} has no SecretString payload")
        return SecretVersion(
            secret_id=secret_id,
            version_id=response["VersionId"],
            secret_string=secret_string,
            stages=frozenset(response.get("VersionStages", [])),
        )
