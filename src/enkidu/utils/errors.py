"""
Custom exception classes for enkidu.
"""

from typing import Any


class EnkiduError(Exception):
    """Base exception for all enkidu errors."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        suggestions: list[str] | None = None,
        context: dict[str, Any] | None = None
    ):
        """Initialize enkidu error with enhanced information.

        Args:
            message: Human-readable error message
            error_code: Machine-readable error code
            suggestions: List of suggested remediation steps
            context: Additional context information for debugging
        """
        super().__init__(message)
        self.error_code = error_code or self.__class__.__name__.upper()
        self.suggestions = suggestions or []
        self.context = context or {}


class ConfigurationError(EnkiduError):
    """Raised when there is an issue with the workspace configuration."""
    pass


class ServiceError(EnkiduError):
    """Base exception for errors occurring in service layers."""
    pass


class ValidationError(EnkiduError):
    """Raised when input data fails validation."""
    pass


class CacheError(ServiceError):
    """Raised when a link cache file cannot be used.

    Never escapes the cache layer: callers see a cache miss instead.
    """
    pass
