"""Secret rotation for versioned secret stores.

This module provides:
- The four-step rotation protocol (createSecret, setSecret, testSecret,
  finishSecret) and its step router
- SecretStore and TargetResource protocols the steps are written against
- AWSSecretsStore for AWS Secrets Manager
- InMemorySecretStore for development and testing
- PostgresCredentialTarget for rotating a PostgreSQL role's password
- The rotation error taxonomy

Example:
    from credrotate.secrets import (
        AWSSecretsStore,
        DatabaseCredentials,
        PostgresCredentialTarget,
        RotationRequest,
        create_secret_rotator,
    )

    rotator = create_secret_rotator(
        AWSSecretsStore.from_settings(settings),
        PostgresCredentialTarget.from_settings(settings),
        DatabaseCredentials,
    )
    await rotator.handle(RotationRequest.from_event(event))
"""

from credrotate.secrets.aws import AWSSecretsStore
from credrotate.secrets.exceptions import (
    ApplyFailedError,
    GenerationFailedError,
    InvalidRequestError,
    RotationError,
    SecretNotFoundError,
    SecretStoreError,
    SerializationError,
    StageConflictError,
    StepTimeoutError,
    UnknownStepError,
    VerificationFailedError,
)
from credrotate.secrets.memory import InMemorySecretStore
from credrotate.secrets.postgres import PostgresCredentialTarget
from credrotate.secrets.protocol import SecretStore, TargetResource
from credrotate.secrets.rotation import (
    RotationStatus,
    SecretRotator,
    StepResult,
    create_secret_rotator,
    run_rotation,
)
from credrotate.secrets.types import (
    DatabaseCredentials,
    RotationRequest,
    RotationStep,
    SecretEnvelope,
    SecretVersion,
    StagingLabel,
    VersionStages,
)

__all__ = [
    # Protocol
    "SecretStore",
    "TargetResource",
    # Types
    "StagingLabel",
    "RotationStep",
    "SecretVersion",
    "VersionStages",
    "SecretEnvelope",
    "DatabaseCredentials",
    "RotationRequest",
    # Implementations
    "AWSSecretsStore",
    "InMemorySecretStore",
    "PostgresCredentialTarget",
    # Rotation
    "SecretRotator",
    "StepResult",
    "RotationStatus",
    "create_secret_rotator",
    "run_rotation",
    # Errors
    "RotationError",
    "SecretNotFoundError",
    "StageConflictError",
    "SecretStoreError",
    "GenerationFailedError",
    "ApplyFailedError",
    "VerificationFailedError",
    "UnknownStepError",
    "SerializationError",
    "StepTimeoutError",
    "InvalidRequestError",
]
