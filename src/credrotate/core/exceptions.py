"""Core exceptions for invocation context handling."""

from credrotate.utils.exceptions import CredrotateError


class ContextNotSetError(CredrotateError):
    """Raised when attempting to access invocation context that is not set.

    This error indicates a programming error - code requiring context
    is being called outside of an invocation_context() block.
    """

    def __init__(self, message: str = "Invocation context is not set"):
        super().__init__(message)
