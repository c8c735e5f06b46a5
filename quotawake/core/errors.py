"""
Unified exception definitions for Quotawake.

All custom exceptions inherit from QuotawakeError for easy catching.
"""

from typing import Any, Optional


class QuotawakeError(Exception):
    """Base exception for all Quotawake errors."""

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or "QUOTAWAKE_ERROR"
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for logging/serialization."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(QuotawakeError):
    """Configuration-related errors."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, code="CONFIG_ERROR", **kwargs)


class EnumerationError(QuotawakeError):
    """The account store could not list accounts. Aborts the current pass."""

    def __init__(self, message: str, *, cause: Optional[Exception] = None, **kwargs):
        details = kwargs.pop("details", {})
        if cause:
            details["cause"] = str(cause)
        super().__init__(message, code="ENUMERATION_ERROR", details=details, **kwargs)
        self.cause = cause


class ProviderError(QuotawakeError):
    """Usage provider errors (API failures, rate limits, etc.)."""

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        recoverable: bool = True,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        details["provider"] = provider
        details["recoverable"] = recoverable
        super().__init__(message, code="PROVIDER_ERROR", details=details, **kwargs)
        self.provider = provider
        self.recoverable = recoverable


class RateLimitError(ProviderError):
    """API rate limit exceeded."""

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        retry_after: Optional[int] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        details["retry_after"] = retry_after
        super().__init__(message, provider=provider, recoverable=True, details=details, **kwargs)
        self.code = "RATE_LIMIT"
        self.retry_after = retry_after


class AuthenticationError(ProviderError):
    """No usable credential, or the provider rejected it."""

    def __init__(self, message: str, *, provider: str, **kwargs):
        super().__init__(message, provider=provider, recoverable=False, **kwargs)
        self.code = "AUTH_ERROR"
