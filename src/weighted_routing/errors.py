"""
Error classes for the topology compiler.

Every error raised while loading configuration or compiling a topology is a
configuration error: compilation aborts and no partial resource graph is
returned.
"""

from typing import Any


class ConfigurationError(Exception):
    """Base configuration error."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "CONFIGURATION_ERROR"
        self.details = details or {}


class ValidationError(ConfigurationError):
    """A declared value violates the topology contract."""

    def __init__(
        self,
        message: str,
        error_code: str = "VALIDATION_FAILED",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, error_code, details)


class DuplicateNameError(ValidationError):
    """A name that must be unique was declared twice."""

    def __init__(
        self,
        message: str,
        error_code: str = "DUPLICATE_NAME",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, error_code, details)


class EnvironmentContextError(ConfigurationError):
    """The shared environment handed to a component is absent or malformed."""

    def __init__(
        self,
        message: str = "Mesh environment is incomplete",
        error_code: str = "ENVIRONMENT_INCOMPLETE",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, error_code, details)
