"""Ports consumed by the rotation core.

This module defines the two protocols the rotation steps are written
against: the versioned secret store and the target resource whose live
credential is being rotated. Cancellation is asyncio's: cancelling the
task running a step aborts any in-flight port call.
"""

from typing import Protocol, TypeVar, runtime_checkable

from credrotate.secrets.types import SecretEnvelope, SecretVersion, VersionStages

E = TypeVar("E", bound=SecretEnvelope)
E_contra = TypeVar("E_contra", bound=SecretEnvelope, contravariant=True)


@runtime_checkable
class SecretStore(Protocol):
    """Protocol for versioned secret stores.

    Each call must be individually atomic at the store. Staging labels are
    passed and returned as plain strings (``StagingLabel.X.value``).
    """

    async def read_by_stage(self, secret_id: str, stage: str) -> SecretVersion:
        """Read the version carrying a staging label.

        Raises:
            SecretNotFoundError: If no version carries the label
            SecretStoreError: If the store cannot be reached
        """
        ...

    async def read_by_version(
        self,
        secret_id: str,
        version_id: str,
        stage: str,
    ) -> SecretVersion:
        """Read an exact version, which must also carry the given label.

        Raises:
            SecretNotFoundError: If that (version, stage) pair does not exist
            SecretStoreError: If the store cannot be reached
        """
        ...

    async def write_pending(self, secret_id: str, token: str, secret_string: str) -> None:
        """Create or overwrite the version ``token`` and label it AWSPENDING.

        Calling twice with identical arguments must be safe.

        Raises:
            SecretNotFoundError: If the secret does not exist
            SecretStoreError: If the store rejects the write
        """
        ...

    async def describe_versions(self, secret_id: str) -> VersionStages:
        """Return every version id with the staging labels attached to it.

        Raises:
            SecretNotFoundError: If the secret does not exist
            SecretStoreError: If the store cannot be reached
        """
        ...

    async def promote(
        self,
        secret_id: str,
        to_version_id: str,
        from_version_id: str | None,
    ) -> None:
        """Atomically move AWSCURRENT from ``from_version_id`` to ``to_version_id``.

        ``to_version_id`` keeps its AWSPENDING label.

        Raises:
            StageConflictError: If ``from_version_id`` no longer holds AWSCURRENT
            SecretNotFoundError: If the secret or target version does not exist
            SecretStoreError: If the store cannot be reached
        """
        ...


@runtime_checkable
class TargetResource(Protocol[E_contra]):
    """Protocol for the backing resource whose credential is rotated.

    Implementations are bound to one envelope type, so each deployment's
    credential shape is known to its own target while the rotation core
    stays shape-agnostic.
    """

    async def generate_secret(self, envelope: E_contra) -> None:
        """Replace the envelope's credential material in place.

        New material must differ from the material it replaces.
        """
        ...

    async def set_secret(self, envelope: E_contra) -> None:
        """Apply the envelope's credential to the resource.

        Reapplying an identical envelope must succeed.
        """
        ...

    async def try_connection(self, envelope: E_contra) -> None:
        """Authenticate with the envelope's credential and run a no-op.

        Raises on failure; has no side effects beyond the connection attempt.
        """
        ...

    async def close(self) -> None:
        """Release connections and other resources."""
        ...
