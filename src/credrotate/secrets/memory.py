"""In-process secret store for development and testing.

Keeps versions and staging labels in memory with the same label
semantics as AWS Secrets Manager, so rotations can be exercised without
a store backend.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from uuid import uuid4

from credrotate.secrets.exceptions import SecretNotFoundError, StageConflictError
from credrotate.secrets.types import SecretVersion, StagingLabel, VersionStages

logger = logging.getLogger(__name__)

CURRENT = StagingLabel.CURRENT.value
PENDING = StagingLabel.PENDING.value
PREVIOUS = StagingLabel.PREVIOUS.value


@dataclass
class _StoredVersion:
    secret_string: str
    stages: set[str] = field(default_factory=set)


class InMemorySecretStore:
    """Secret store that holds every version in process memory.

    A staging label is attached to at most one version of a secret.
    Writing AWSPENDING moves the label off any other version; promoting
    moves AWSCURRENT and tags the previous holder AWSPREVIOUS.

    Example:
        store = InMemorySecretStore()
        store.put_current("db/app", '{"user": "app", "password": "..."}', "v1")

        await store.write_pending("db/app", "v2", new_secret_string)
        await store.promote("db/app", "v2", "v1")
    """

    def __init__(self) -> None:
        """Initialize an empty store."""
        self._secrets: dict[str, dict[str, _StoredVersion]] = {}
        self._lock = asyncio.Lock()

    def put_current(
        self,
        secret_id: str,
        secret_string: str,
        version_id: str | None = None,
    ) -> str:
        """Seed a secret with a version labeled AWSCURRENT.

        Any version already holding AWSCURRENT becomes AWSPREVIOUS.

        Args:
            secret_id: Secret to seed
            secret_string: Serialized envelope
            version_id: Version id (generated if not provided)

        Returns:
            The version id that now holds AWSCURRENT
        """
        version_id = version_id or str(uuid4())
        versions = self._secrets.setdefault(secret_id, {})
        previous = self._holder(versions, CURRENT)

        versions[version_id] = _StoredVersion(secret_string=secret_string)
        if previous is not None and previous != version_id:
            self._move_label(versions, PREVIOUS, previous)
            versions[previous].stages.discard(CURRENT)
        versions[version_id].stages.add(CURRENT)
        return version_id

    async def read_by_stage(self, secret_id: str, stage: str) -> SecretVersion:
        versions = self._versions(secret_id)
        version_id = self._holder(versions, stage)
        if version_id is None:
            raise SecretNotFoundError(secret_id, stage=stage)
        return self._snapshot(secret_id, version_id, versions[version_id])

    async def read_by_version(
        self,
        secret_id: str,
        version_id: str,
        stage: str,
    ) -> SecretVersion:
        versions = self._versions(secret_id)
        stored = versions.get(version_id)
        if stored is None or stage not in stored.stages:
            raise SecretNotFoundError(secret_id, version_id=version_id, stage=stage)
        return self._snapshot(secret_id, version_id, stored)

    async def write_pending(self, secret_id: str, token: str, secret_string: str) -> None:
        async with self._lock:
            versions = self._versions(secret_id)
            stored = versions.get(token)
            if stored is None:
                versions[token] = _StoredVersion(secret_string=secret_string)
            else:
                stored.secret_string = secret_string
            self._move_label(versions, PENDING, token)
            logger.debug(f"Wrote pending version {token} of {secret_id}")

    async def describe_versions(self, secret_id: str) -> VersionStages:
        versions = self._versions(secret_id)
        return {
            version_id: frozenset(stored.stages)
            for version_id, stored in versions.items()
            if stored.stages
        }

    async def promote(
        self,
        secret_id: str,
        to_version_id: str,
        from_version_id: str | None,
    ) -> None:
        async with self._lock:
            versions = self._versions(secret_id)
            if to_version_id not in versions:
                raise SecretNotFoundError(secret_id, version_id=to_version_id)

            holder = self._holder(versions, CURRENT)
            if holder != from_version_id:
                if holder == to_version_id:
                    reason = "target already holds the label"
                elif from_version_id is None:
                    reason = f"label is held by {holder}"
                else:
                    reason = "source does not hold the label"
                raise StageConflictError(
                    secret_id, CURRENT, to_version_id, from_version_id, reason=reason
                )

            if from_version_id is not None:
                versions[from_version_id].stages.discard(CURRENT)
                self._move_label(versions, PREVIOUS, from_version_id)
            versions[to_version_id].stages.add(CURRENT)
            logger.info(f"Moved {CURRENT} of {secret_id} from {from_version_id} to {to_version_id}")

    def _versions(self, secret_id: str) -> dict[str, _StoredVersion]:
        versions = self._secrets.get(secret_id)
        if versions is None:
            raise SecretNotFoundError(secret_id)
        return versions

    @staticmethod
    def _holder(versions: dict[str, _StoredVersion], stage: str) -> str | None:
        for version_id, stored in versions.items():
            if stage in stored.stages:
                return version_id
        return None

    @staticmethod
    def _move_label(versions: dict[str, _StoredVersion], stage: str, version_id: str) -> None:
        for stored in versions.values():
            stored.stages.discard(stage)
        versions[version_id].stages.add(stage)

    @staticmethod
    def _snapshot(secret_id: str, version_id: str, stored: _StoredVersion) -> SecretVersion:
        return SecretVersion(
            secret_id=secret_id,
            version_id=version_id,
            secret_string=stored.secret_string,
            stages=frozenset(stored.stages),
        )
