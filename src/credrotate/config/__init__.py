"""Configuration for credrotate."""

from credrotate.config.settings import PasswordPolicy, Settings, get_settings

__all__ = ["PasswordPolicy", "Settings", "get_settings"]
