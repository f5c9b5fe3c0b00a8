"""Core infrastructure: invocation context and logging."""

from credrotate.core.context import (
    InvocationContext,
    get_current_context,
    get_current_context_or_none,
    invocation_context,
)
from credrotate.core.exceptions import ContextNotSetError

__all__ = [
    "ContextNotSetError",
    "InvocationContext",
    "get_current_context",
    "get_current_context_or_none",
    "invocation_context",
]
