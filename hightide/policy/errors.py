"""Errors raised while loading the policy configuration file.

The same classes are fatal or recoverable depending on where they surface:
the ConfigManager constructor lets them propagate, a background reload logs
them and keeps the previously published policies.
"""

from __future__ import annotations


class ConfigError(Exception):
    pass


class ConfigNotFoundError(ConfigError):
    """No config file configured, or the configured file does not exist."""


class ConfigFormatError(ConfigError):
    """The document breaks the configuration/srcPath/destPath structure."""


class ConfigValidationError(ConfigError):
    """The document parsed but one or more policies are not usable."""

    def __init__(self, errors: list):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))
