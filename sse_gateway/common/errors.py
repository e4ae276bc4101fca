"""
Error Definitions

Defines custom exception classes used by the gateway for unified error handling.
"""

from typing import Any, Optional


class AppError(Exception):
    """
    Gateway Base Exception

    Base class for all custom exceptions, containing error message, type, and code.
    """

    def __init__(
        self,
        message: str,
        error_type: str = "app_error",
        code: str = "internal_error",
        details: Optional[dict[str, Any]] = None,
        status_code: int = 500,
    ):
        """
        Initialize exception

        Args:
            message: Error message
            error_type: Error type
            code: Error code
            details: Extra error details
            status_code: HTTP status code
        """
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.code = code
        self.details = details or {}
        self.status_code = status_code

    def to_dict(self, include_details: bool = True) -> dict[str, Any]:
        """
        Convert to dictionary format (for API response)

        Returns:
            dict: Error information dictionary
        """
        result = {
            "error": {
                "message": self.message,
                "type": self.error_type,
                "code": self.code,
            }
        }
        if self.details and include_details:
            result["error"]["details"] = self.details
        return result


class NotFoundError(AppError):
    """
    Resource Not Found Error

    Raised when a requested provider, model or combo does not exist.
    """

    def __init__(
        self,
        message: str = "Resource not found",
        code: str = "not_found",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            error_type="not_found_error",
            code=code,
            details=details,
            status_code=404,
        )


class ValidationError(AppError):
    """
    Parameter Validation Error

    Raised when a request body does not meet the requirements of its format.
    """

    def __init__(
        self,
        message: str = "Validation failed",
        code: str = "validation_error",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            error_type="validation_error",
            code=code,
            details=details,
            status_code=422,
        )


class TranslationError(ValidationError):
    """Raised when a body cannot be translated between formats."""

    def __init__(
        self,
        message: str,
        source_format: Optional[str] = None,
        target_format: Optional[str] = None,
    ):
        super().__init__(
            message=message,
            code="translation_error",
            details={
                "source_format": source_format,
                "target_format": target_format,
            },
        )
        self.source_format = source_format
        self.target_format = target_format


class UnsupportedFormatError(TranslationError):
    """Raised when a format name is unknown."""

    def __init__(self, value: str):
        super().__init__(message=f"Unsupported format: {value}")
        self.code = "unsupported_format"


class UpstreamError(AppError):
    """
    Upstream Service Error

    Raised when the upstream provider returns an error or all providers fail.
    """

    def __init__(
        self,
        message: str = "Upstream service error",
        code: str = "upstream_error",
        details: Optional[dict[str, Any]] = None,
        status_code: int = 502,
    ):
        super().__init__(
            message=message,
            error_type="upstream_error",
            code=code,
            details=details,
            status_code=status_code,
        )


class ExecutorExhaustedError(UpstreamError):
    """
    All Fallback URLs Failed

    Raised by an executor once every fallback URL was tried without a returnable response.
    """

    def __init__(self, url_count: int, last_status: int):
        super().__init__(
            message=f"All {url_count} URLs failed with status {last_status}",
            code="fallback_exhausted",
            details={"url_count": url_count, "last_status": last_status},
        )
        self.url_count = url_count
        self.last_status = last_status


class RequestAbortedError(AppError):
    """Raised when the caller's cancellation signal fires during an upstream call or backoff."""

    def __init__(self, message: str = "Request aborted"):
        super().__init__(
            message=message,
            error_type="request_aborted",
            code="request_aborted",
            status_code=499,
        )
