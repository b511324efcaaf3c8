"""
Base Exception Class

This module contains ONLY the base exception class that all other exceptions
inherit from. Specialized exceptions live in their themed modules.
"""

from typing import Any


class AdCacheError(Exception):
    """
    Base exception for all caching and rate-limiting errors.

    All custom exceptions inherit from this class to enable:
    - Consistent error handling
    - Request ID correlation
    - Structured error logging

    Attributes:
        message: Error message
        request_id: Request ID for correlation (if available)
        details: Additional error details (dict)

    Example:
        raise FetchFailureError(
            "Upstream campaigns fetch failed",
            details={"key": "meta:campaigns:v1:42:all", "status": 500},
        )
    """

    def __init__(
        self, message: str, request_id: str | None = None, details: dict[str, Any] | None = None
    ):
        self.message = message
        self.request_id = request_id
        self.details = (details or {}).copy()
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for logging/API responses.

        Returns:
            Dict with error_type, message, request_id, and details
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "request_id": self.request_id,
            "details": self.details,
        }

    def with_context(self, **context) -> "AdCacheError":
        """
        Add additional context to the error details.

        Returns:
            Self (for method chaining)
        """
        self.details.update(context)
        return self

    def __repr__(self) -> str:
        details_str = f", details={self.details}" if self.details else ""
        request_id_str = f", request_id='{self.request_id}'" if self.request_id else ""
        return f"{self.__class__.__name__}(message='{self.message}'{request_id_str}{details_str})"

    @classmethod
    def from_exception(
        cls,
        exc: BaseException,
        message: str | None = None,
        request_id: str | None = None,
        **details
    ) -> "AdCacheError":
        """
        Create an error from another exception.

        Useful for wrapping third-party exceptions with additional context.

        Example:
            >>> try:
            ...     await client.ping()
            ... except redis.ConnectionError as e:
            ...     raise CacheBackendUnavailableError.from_exception(e, operation="ping") from e
        """
        error_message = message or str(exc) or exc.__class__.__name__
        error_details = {
            "original_error": exc.__class__.__name__,
            "original_message": str(exc),
            **details
        }
        return cls(error_message, request_id=request_id, details=error_details)


class ConfigurationError(AdCacheError):
    """Raised when configuration is invalid or missing."""
    pass
