"""Rotation error taxonomy.

Every error carries a ``retryable`` flag so the invoking transport can
decide between retrying the step and halting the rotation. The core never
retries internally.
"""

from credrotate.utils.exceptions import CredrotateError


class RotationError(CredrotateError):
    """Base exception for rotation failures."""

    retryable: bool = False


class SecretNotFoundError(RotationError):
    """Raised when a secret, version or stage does not exist in the store.

    Attributes:
        secret_id: The secret that was looked up
        version_id: The version that was requested, if any
        stage: The staging label that was requested, if any
    """

    def __init__(
        self,
        secret_id: str,
        version_id: str | None = None,
        stage: str | None = None,
    ):
        self.secret_id = secret_id
        self.version_id = version_id
        self.stage = stage
        detail = ", ".join(
            f"{name}={value}"
            for name, value in (("version", version_id), ("stage", stage))
            if value is not None
        )
        message = f"Secret not found: {secret_id}"
        if detail:
            message += f" ({detail})"
        super().__init__(message)


class StageConflictError(RotationError):
    """Raised when a label promotion lost a race.

    The version expected to hold the label no longer holds it. A fresh
    finishSecret re-derives the current version and can succeed.
    """

    retryable = True

    def __init__(
        self,
        secret_id: str,
        stage: str,
        to_version_id: str,
        from_version_id: str | None,
        reason: str | None = None,
    ):
        self.secret_id = secret_id
        self.stage = stage
        self.to_version_id = to_version_id
        self.from_version_id = from_version_id
        message = (
            f"Cannot move {stage} of {secret_id} from {from_version_id} to {to_version_id}"
        )
        if reason:
            message += f": {reason}"
        super().__init__(message)


class SecretStoreError(RotationError):
    """Raised when the secret store cannot be reached or rejects a call."""

    retryable = True

    def __init__(self, message: str, cause: Exception | None = None):
        self.cause = cause
        super().__init__(message)


class GenerationFailedError(RotationError):
    """Raised when new credential material could not be generated."""

    retryable = True


class ApplyFailedError(RotationError):
    """Raised when the pending credential could not be applied to the resource."""

    retryable = True


class VerificationFailedError(RotationError):
    """Raised when the pending credential does not authenticate.

    This halts the rotation: the invoker must not proceed to finishSecret.
    """

    retryable = False


class UnknownStepError(RotationError):
    """Raised when a request names a step outside the rotation protocol.

    Attributes:
        step: The offending step name
    """

    def __init__(self, step: str):
        self.step = step
        super().__init__(f"Unknown rotation step: {step!r}")


class SerializationError(RotationError):
    """Raised when a secret envelope cannot be marshalled or unmarshalled."""

    def __init__(self, message: str, cause: Exception | None = None):
        self.cause = cause
        super().__init__(message)


class StepTimeoutError(RotationError):
    """Raised when a step does not finish before the invoker's deadline."""

    retryable = True

    def __init__(self, step: str, timeout: float):
        self.step = step
        self.timeout = timeout
        super().__init__(f"Rotation step {step} exceeded its deadline of {timeout:.1f}s")


class InvalidRequestError(RotationError):
    """Raised when an invocation payload is malformed."""

    pass
