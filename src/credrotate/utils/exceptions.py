"""Custom exceptions for credrotate."""


class CredrotateError(Exception):
    """Base exception for all credrotate errors."""

    pass


class ConfigurationError(CredrotateError):
    """Error in configuration or settings."""

    pass
