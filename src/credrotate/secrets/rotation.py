"""Four-step secret rotation.

This module implements the rotation protocol driven by the secret store:
createSecret, setSecret, testSecret and finishSecret. All cross-step state
lives in the store's version/label table; a rotator holds no state between
invocations, so any step may be redelivered or retried.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Generic
from uuid import uuid4

import structlog

from credrotate.core.logging import LogContext
from credrotate.secrets.exceptions import (
    ApplyFailedError,
    GenerationFailedError,
    RotationError,
    SecretNotFoundError,
    StepTimeoutError,
    UnknownStepError,
    VerificationFailedError,
)
from credrotate.secrets.protocol import E, SecretStore, TargetResource
from credrotate.secrets.types import (
    DatabaseCredentials,
    RotationRequest,
    RotationStep,
    StagingLabel,
)

logger = structlog.get_logger(__name__)

CURRENT = StagingLabel.CURRENT.value
PENDING = StagingLabel.PENDING.value


class RotationStatus(str, Enum):
    """Outcome of a successful rotation step."""

    COMPLETED = "completed"
    SKIPPED = "skipped"


@dataclass
class StepResult:
    """Result of a single rotation step.

    Attributes:
        step: Step that ran
        secret_id: Secret the step ran against
        token: Version token of the rotation attempt
        status: COMPLETED, or SKIPPED when an idempotency guard short-circuited
        started_at: When the step started
        completed_at: When the step finished
        duration_ms: Wall time of the step
        from_version_id: Version that lost AWSCURRENT (finishSecret only)
    """

    step: RotationStep
    secret_id: str
    token: str
    status: RotationStatus
    started_at: datetime
    completed_at: datetime
    duration_ms: float
    from_version_id: str | None = None


StepFunction = Callable[[str, str], Awaitable[StepResult]]


class SecretRotator(Generic[E]):
    """Runs the rotation steps for one deployment's envelope type.

    Example:
        rotator = SecretRotator(store, PostgresCredentialTarget(...), DatabaseCredentials)

        result = await rotator.handle(
            RotationRequest(secret_id=arn, token=token, step="createSecret")
        )
    """

    def __init__(
        self,
        store: SecretStore,
        target: TargetResource[E],
        envelope_type: type[E],
    ):
        """Initialize the rotator.

        Args:
            store: Versioned secret store holding the credential
            target: Resource the credential authenticates against
            envelope_type: Envelope model the secret deserializes into
        """
        self.store = store
        self.target = target
        self.envelope_type = envelope_type
        self._steps: dict[str, StepFunction] = {
            RotationStep.CREATE_SECRET.value: self.create_secret,
            RotationStep.SET_SECRET.value: self.set_secret,
            RotationStep.TEST_SECRET.value: self.test_secret,
            RotationStep.FINISH_SECRET.value: self.finish_secret,
        }

    # ----------------------------------------------------------------
    # Step router
    # ----------------------------------------------------------------

    async def handle(
        self,
        request: RotationRequest,
        *,
        timeout: float | None = None,
    ) -> StepResult:
        """Dispatch a rotation request to its step.

        Args:
            request: The step request
            timeout: Optional deadline in seconds for the whole step

        Returns:
            StepResult of the step

        Raises:
            UnknownStepError: If the step name is not one of the four steps
            StepTimeoutError: If the deadline expires before the step finishes
            RotationError: Whatever the step raised
        """
        step_fn = self._steps.get(request.step)
        if step_fn is None:
            logger.error("unknown_rotation_step", step=request.step)
            raise UnknownStepError(request.step)

        deadline = asyncio.timeout(timeout)
        try:
            async with deadline:
                return await step_fn(request.secret_id, request.token)
        except TimeoutError as e:
            if timeout is not None and deadline.expired():
                raise StepTimeoutError(request.step, timeout) from e
            raise

    # ----------------------------------------------------------------
    # Steps
    # ----------------------------------------------------------------

    async def create_secret(self, secret_id: str, token: str) -> StepResult:
        """Ensure a pending version with fresh material exists for ``token``.

        An existing pending version for the token is never overwritten.
        """
        started = _Clock(RotationStep.CREATE_SECRET, secret_id, token)

        current = await self.store.read_by_stage(secret_id, CURRENT)

        try:
            await self.store.read_by_version(secret_id, token, PENDING)
        except SecretNotFoundError:
            pass
        else:
            logger.info("pending_version_exists", secret_id=secret_id, token=token)
            return started.finish(RotationStatus.SKIPPED)

        envelope = self.envelope_type.from_secret_string(current.secret_string)
        await self._call_target(
            self.target.generate_secret, envelope, GenerationFailedError, "generate"
        )
        await self.store.write_pending(secret_id, token, envelope.to_secret_string())

        logger.info(
            "pending_version_written",
            secret_id=secret_id,
            token=token,
            derived_from=current.version_id,
        )
        return started.finish(RotationStatus.COMPLETED)

    async def set_secret(self, secret_id: str, token: str) -> StepResult:
        """Apply the pending credential to the target resource."""
        started = _Clock(RotationStep.SET_SECRET, secret_id, token)

        envelope = await self._read_pending(secret_id, token)
        await self._call_target(self.target.set_secret, envelope, ApplyFailedError, "apply")

        logger.info("pending_secret_applied", secret_id=secret_id, token=token)
        return started.finish(RotationStatus.COMPLETED)

    async def test_secret(self, secret_id: str, token: str) -> StepResult:
        """Verify the pending credential authenticates against the resource."""
        started = _Clock(RotationStep.TEST_SECRET, secret_id, token)

        envelope = await self._read_pending(secret_id, token)
        await self._call_target(
            self.target.try_connection, envelope, VerificationFailedError, "verify"
        )

        logger.info("pending_secret_verified", secret_id=secret_id, token=token)
        return started.finish(RotationStatus.COMPLETED)

    async def finish_secret(self, secret_id: str, token: str) -> StepResult:
        """Promote the pending version to AWSCURRENT, exactly once."""
        started = _Clock(RotationStep.FINISH_SECRET, secret_id, token)

        versions = await self.store.describe_versions(secret_id)

        from_version_id: str | None = None
        for version_id, stages in versions.items():
            if CURRENT not in stages:
                continue
            if version_id == token:
                logger.info("version_already_current", secret_id=secret_id, token=token)
                return started.finish(RotationStatus.SKIPPED)
            from_version_id = version_id

        if from_version_id is None:
            # Should not happen: the store always keeps one current version
            logger.warning("no_current_version_found", secret_id=secret_id, token=token)

        await self.store.promote(secret_id, token, from_version_id)

        logger.info(
            "secret_promoted",
            secret_id=secret_id,
            token=token,
            from_version_id=from_version_id,
        )
        return started.finish(RotationStatus.COMPLETED, from_version_id=from_version_id)

    # ----------------------------------------------------------------
    # Helpers
    # ----------------------------------------------------------------

    async def _read_pending(self, secret_id: str, token: str) -> E:
        pending = await self.store.read_by_version(secret_id, token, PENDING)
        return self.envelope_type.from_secret_string(pending.secret_string)

    @staticmethod
    async def _call_target(
        operation: Callable[[E], Awaitable[None]],
        envelope: E,
        error_type: type[RotationError],
        action: str,
    ) -> None:
        """Run a target operation, wrapping foreign failures in ``error_type``."""
        try:
            await operation(envelope)
        except RotationError:
            raise
        except Exception as e:
            logger.warning(
                "target_operation_failed",
                action=action,
                error_type=type(e).__name__,
                error_message=str(e),
            )
            raise error_type(f"Target failed to {action} credential: {e}") from e


class _Clock:
    """Captures start time of a step and builds its StepResult."""

    def __init__(self, step: RotationStep, secret_id: str, token: str):
        self.step = step
        self.secret_id = secret_id
        self.token = token
        self.started_at = datetime.now(UTC)
        self._t0 = time.perf_counter()
        logger.debug("rotation_step_started", step=step.value, secret_id=secret_id, token=token)

    def finish(self, status: RotationStatus, from_version_id: str | None = None) -> StepResult:
        return StepResult(
            step=self.step,
            secret_id=self.secret_id,
            token=self.token,
            status=status,
            started_at=self.started_at,
            completed_at=datetime.now(UTC),
            duration_ms=round((time.perf_counter() - self._t0) * 1000, 2),
            from_version_id=from_version_id,
        )


async def run_rotation(
    rotator: SecretRotator[E],
    secret_id: str,
    token: str | None = None,
) -> list[StepResult]:
    """Run all four steps in order for one rotation attempt.

    Stops at the first failing step, so finishSecret is never reached
    after testSecret fails.

    Args:
        rotator: Rotator to drive
        secret_id: Secret to rotate
        token: Version token (a fresh uuid4 when omitted)

    Returns:
        StepResult for each step, in order

    Raises:
        RotationError: From the first step that failed
    """
    token = token or str(uuid4())
    results: list[StepResult] = []

    with LogContext(rotation_token=token):
        for step in RotationStep:
            request = RotationRequest(secret_id=secret_id, token=token, step=step.value)
            results.append(await rotator.handle(request))

    return results


def create_secret_rotator(
    store: SecretStore,
    target: TargetResource[E],
    envelope_type: type[E] = DatabaseCredentials,  # type: ignore[assignment]
) -> SecretRotator[E]:
    """Create a SecretRotator instance.

    Args:
        store: Secret store to use
        target: Target resource to use
        envelope_type: Envelope model (default: DatabaseCredentials)

    Returns:
        SecretRotator instance
    """
    return SecretRotator(store, target, envelope_type)
