"""Utility modules for credrotate."""

from credrotate.utils.exceptions import ConfigurationError, CredrotateError

__all__ = [
    "CredrotateError",
    "ConfigurationError",
]
