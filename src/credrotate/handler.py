"""AWS Lambda entry point for secret rotation.

Secrets Manager invokes the function once per rotation step with a payload
of the form ``{"SecretId": ..., "ClientRequestToken": ..., "Step": ...}``.
Failures are logged and re-raised; Secrets Manager owns the retry policy.
"""

import asyncio
from typing import Any

from credrotate.config.settings import Settings, get_settings
from credrotate.core.context import InvocationContext, invocation_context
from credrotate.core.logging import get_logger, log_exception, setup_logging
from credrotate.secrets.aws import AWSSecretsStore
from credrotate.secrets.exceptions import InvalidRequestError, RotationError
from credrotate.secrets.postgres import PostgresCredentialTarget
from credrotate.secrets.rotation import SecretRotator, StepResult, create_secret_rotator
from credrotate.secrets.types import DatabaseCredentials, RotationRequest

logger = get_logger(__name__)


def build_rotator(settings: Settings) -> SecretRotator[DatabaseCredentials]:
    """Build the rotator for the configured store and database.

    Raises:
        ConfigurationError: If required settings are missing
    """
    return create_secret_rotator(
        AWSSecretsStore.from_settings(settings),
        PostgresCredentialTarget.from_settings(settings),
        DatabaseCredentials,
    )


def step_deadline(context: Any, settings: Settings) -> float | None:
    """Seconds the step may run: the invocation's remaining time minus a margin."""
    remaining_ms = getattr(context, "get_remaining_time_in_millis", None)
    if remaining_ms is None:
        return None
    return max(remaining_ms() / 1000 - settings.deadline_margin_seconds, 0.0)


async def run_step(
    request: RotationRequest,
    settings: Settings,
    timeout: float | None = None,
) -> StepResult:
    """Build a rotator, run one step and release the target's resources."""
    rotator = build_rotator(settings)
    try:
        return await rotator.handle(request, timeout=timeout)
    finally:
        await rotator.target.close()


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, str]:
    """Handle one rotation step invocation.

    Args:
        event: Rotation payload from Secrets Manager
        context: Lambda context object

    Returns:
        Summary of the completed step

    Raises:
        RotationError: If the step failed (re-raised after logging)
    """
    settings = get_settings()
    setup_logging(settings.log_level, settings.use_json_logs)
    request_id = getattr(context, "aws_request_id", None)

    try:
        request = RotationRequest.from_event(event)
    except InvalidRequestError as e:
        logger.error("invalid_rotation_event", error_message=str(e), request_id=request_id)
        raise

    ctx = InvocationContext(
        secret_id=request.secret_id,
        token=request.token,
        step=request.step,
        request_id=request_id,
    )
    with invocation_context(ctx):
        logger.info("rotation_step_received")
        try:
            result = asyncio.run(run_step(request, settings, step_deadline(context, settings)))
        except RotationError as e:
            logger.error(
                "rotation_step_failed",
                error_type=type(e).__name__,
                error_message=str(e),
                retryable=e.retryable,
            )
            raise
        except Exception as e:
            log_exception(logger, e)
            raise

        logger.info(
            "rotation_step_completed",
            status=result.status.value,
            duration_ms=result.duration_ms,
        )

    return {
        "Step": request.step,
        "SecretId": request.secret_id,
        "Status": result.status.value,
    }
