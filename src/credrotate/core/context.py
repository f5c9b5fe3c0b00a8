"""Invocation context for rotation step executions.

Each rotation step runs inside an invocation context carrying the secret
being rotated, the version token and the step name. The context is held
in a ContextVar so log processors and adapters can read it without the
values being threaded through every call.

Usage:
    from credrotate.core.context import InvocationContext, invocation_context

    ctx = InvocationContext(secret_id=arn, token=token, step="createSecret")

    with invocation_context(ctx):
        current = get_current_context()
        await rotator.handle(request)
"""

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar, Token
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from credrotate.core.exceptions import ContextNotSetError


class InvocationContext(BaseModel):
    """Context for a single rotation step invocation.

    Attributes:
        secret_id: Identifier (ARN or name) of the secret being rotated
        token: ClientRequestToken of the candidate version
        step: Rotation step name as delivered by the invoker
        request_id: Invoker's request identifier (Lambda aws_request_id), if any
        started_at: When the invocation started
    """

    model_config = {"frozen": True}

    secret_id: str
    token: str
    step: str
    request_id: str | None = None
    started_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def to_log_dict(self) -> dict[str, Any]:
        """Convert context to a dictionary of log fields.

        Returns:
            Dictionary with context fields suitable for structured logs
        """
        fields: dict[str, Any] = {
            "secret_id": self.secret_id,
            "token": self.token,
            "step": self.step,
        }
        if self.request_id is not None:
            fields["request_id"] = self.request_id
        return fields


# =============================================================================
# Context Variable Management
# =============================================================================

_invocation_context: ContextVar[InvocationContext | None] = ContextVar(
    "invocation_context", default=None
)


def get_current_context() -> InvocationContext:
    """Get the current invocation context.

    Returns:
        The current InvocationContext

    Raises:
        ContextNotSetError: If no context is set in the current execution context
    """
    ctx = _invocation_context.get()
    if ctx is None:
        raise ContextNotSetError(
            "No invocation context is set. Use invocation_context() context manager."
        )
    return ctx


def get_current_context_or_none() -> InvocationContext | None:
    """Get the current invocation context, or None if not set."""
    return _invocation_context.get()


def set_context(ctx: InvocationContext) -> Token[InvocationContext | None]:
    """Set the invocation context and return a token for restoration.

    This is a low-level API. Prefer using the invocation_context() context manager.
    """
    return _invocation_context.set(ctx)


def reset_context(token: Token[InvocationContext | None]) -> None:
    """Reset the context to its previous value using a token."""
    _invocation_context.reset(token)


@contextmanager
def invocation_context(ctx: InvocationContext) -> Iterator[InvocationContext]:
    """Context manager for setting invocation context.

    Works for both sync and async code because contextvars are
    propagated to tasks created inside the block.

    Args:
        ctx: The context to set for the duration of the block

    Yields:
        The context that was set
    """
    token = set_context(ctx)
    try:
        yield ctx
    finally:
        reset_context(token)
