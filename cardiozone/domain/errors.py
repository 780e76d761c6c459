"""
Error taxonomy for the alerting core.

ValidationError is pydantic's: every domain model validates on construction,
so a malformed pattern, threshold or cooldown surfaces as the same type
(a ValueError subclass) regardless of which model rejected it.
"""

from pydantic import ValidationError


class TransientStreamError(RuntimeError):
    """A sample source hiccup. The monitoring loop logs it and keeps reading."""

    def __init__(self, message: str, source: str | None = None) -> None:
        super().__init__(message)
        self.source = source


class ConfigurationRejected(ValueError):
    """A configuration update could not be turned into a rule set."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause


__all__ = ["ValidationError", "TransientStreamError", "ConfigurationRejected"]
