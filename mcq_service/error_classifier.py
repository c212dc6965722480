"""Error classification for LLM API failures.

This module classifies exceptions raised by model providers so the fallback
engine can decide whether to retry in place (quota exhaustion, overload) or
fail over to the next candidate model immediately (everything else). It also
extracts the provider's retry hints, which drive the backoff delay.
"""

import math
import re
from enum import Enum
from typing import Any, Optional


class ErrorCategory(Enum):
    """Categories of API errors."""

    RATE_LIMIT = "rate_limit"  # HTTP 429, quota exceeded
    OVERLOADED = "overloaded"  # HTTP 503, model overloaded
    AUTHENTICATION = "authentication"  # API key invalid or expired
    INVALID_REQUEST = "invalid_request"  # Malformed request or invalid parameters
    MODEL_ERROR = "model_error"  # Model not found or unavailable
    SERVER_ERROR = "server_error"  # Other provider server errors (5xx)
    NETWORK_ERROR = "network_error"  # Connection/timeout errors
    EMPTY_RESPONSE = "empty_response"  # Blocked or candidate-less response
    UNKNOWN = "unknown"  # Unclassified errors


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    CRITICAL = "critical"  # Requires operator attention (e.g., auth)
    HIGH = "high"  # Important but recoverable (e.g., rate limits)
    MEDIUM = "medium"  # Should be addressed (e.g., invalid requests)
    LOW = "low"  # Informational (e.g., temporary network issues)


# Only these categories are retried against the same model.
TRANSIENT_CATEGORIES = frozenset({ErrorCategory.RATE_LIMIT, ErrorCategory.OVERLOADED})

RETRY_IN_PATTERN = re.compile(r"Please retry in ([0-9.]+)s", re.IGNORECASE)


class ClassifiedError:
    """A classified API error with category, severity and retry hints."""

    def __init__(
        self,
        category: ErrorCategory,
        severity: ErrorSeverity,
        provider: str,
        original_error: str,
        message: str,
        is_retryable: bool = False,
        status_code: Optional[int] = None,
        retry_in: Optional[float] = None,
        retry_after: Optional[int] = None,
    ):
        """Initialize classified error.

        Args:
            category: Error category
            severity: Error severity level
            provider: LLM provider name
            original_error: Original error type name
            message: Human-readable error message
            is_retryable: Whether the error is transient and retryable
            status_code: HTTP status code, when one could be determined
            retry_in: Seconds from a "Please retry in Ns" hint in the message
            retry_after: Seconds from a retry-after response header
        """
        self.category = category
        self.severity = severity
        self.provider = provider
        self.original_error = original_error
        self.message = message
        self.is_retryable = is_retryable
        self.status_code = status_code
        self.retry_in = retry_in
        self.retry_after = retry_after

    def __str__(self) -> str:
        """String representation of classified error."""
        return (
            f"[{self.severity.value.upper()}] {self.provider}: "
            f"{self.category.value} - {self.message}"
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for logging/serialization."""
        return {
            "category": self.category.value,
            "severity": self.severity.value,
            "provider": self.provider,
            "original_error": self.original_error,
            "message": self.message,
            "is_retryable": self.is_retryable,
            "status_code": self.status_code,
            "retry_in": self.retry_in,
            "retry_after": self.retry_after,
        }


class ErrorClassifier:
    """Classifies API errors from model providers."""

    RATE_LIMIT_PATTERNS = [
        r"\b429\b",
        r"quota.*exceeded",
        r"resource.*exhausted",
        r"rate.*limit",
        r"too.*many.*requests",
    ]

    OVERLOADED_PATTERNS = [
        r"\b503\b",
        r"overloaded",
        r"service.*unavailable",
    ]

    AUTH_PATTERNS = [
        r"api.*key.*not.*valid",
        r"invalid.*api.*key",
        r"permission.*denied",
        r"unauthori[sz]ed",
        r"\b401\b",
        r"\b403\b",
    ]

    MODEL_PATTERNS = [
        r"model.*not.*found",
        r"is not found for api version",
        r"invalid.*model",
        r"model.*deprecated",
    ]

    SERVER_ERROR_PATTERNS = [
        r"internal.*server.*error",
        r"\b50[0-9]\b",
        r"server.*error",
    ]

    NETWORK_PATTERNS = [
        r"connection.*error",
        r"timed?.?out",
        r"connection.*refused",
        r"connection.*reset",
    ]

    EMPTY_RESPONSE_PATTERNS = [
        r"response\.text.*quick accessor",
        r"no candidates",
        r"finish_reason",
        r"blocked",
    ]

    @staticmethod
    def classify_error(error: Exception, provider: str) -> ClassifiedError:
        """Classify an API error.

        The HTTP status code is trusted first; message patterns are the
        fallback for SDKs that only surface text.

        Args:
            error: The exception that was raised
            provider: Provider name

        Returns:
            ClassifiedError with category, severity and retry hints
        """
        error_str = str(error)
        error_type = type(error).__name__
        status_code = ErrorClassifier.extract_status_code(error)
        retry_in = ErrorClassifier.extract_retry_in(error_str)
        retry_after = ErrorClassifier.extract_retry_after(error)

        def build(
            category: ErrorCategory, severity: ErrorSeverity, message: str
        ) -> ClassifiedError:
            return ClassifiedError(
                category=category,
                severity=severity,
                provider=provider,
                original_error=error_type,
                message=message,
                is_retryable=category in TRANSIENT_CATEGORIES,
                status_code=status_code,
                retry_in=retry_in,
                retry_after=retry_after,
            )

        match = ErrorClassifier._match_patterns
        if status_code == 429 or (
            status_code is None and match(error_str, ErrorClassifier.RATE_LIMIT_PATTERNS)
        ):
            return build(
                ErrorCategory.RATE_LIMIT,
                ErrorSeverity.HIGH,
                f"Quota or rate limit exceeded for {provider}: {error_str[:200]}",
            )

        if status_code == 503 or (
            status_code is None and match(error_str, ErrorClassifier.OVERLOADED_PATTERNS)
        ):
            return build(
                ErrorCategory.OVERLOADED,
                ErrorSeverity.HIGH,
                f"{provider} model overloaded: {error_str[:200]}",
            )

        if status_code in (401, 403) or match(error_str, ErrorClassifier.AUTH_PATTERNS):
            return build(
                ErrorCategory.AUTHENTICATION,
                ErrorSeverity.CRITICAL,
                f"Authentication failed. Verify the {provider} API key.",
            )

        if status_code == 404 or match(error_str, ErrorClassifier.MODEL_PATTERNS):
            return build(
                ErrorCategory.MODEL_ERROR,
                ErrorSeverity.MEDIUM,
                f"Model unavailable on {provider}: {error_str[:200]}",
            )

        if (status_code is not None and status_code >= 500) or match(
            error_str, ErrorClassifier.SERVER_ERROR_PATTERNS
        ):
            return build(
                ErrorCategory.SERVER_ERROR,
                ErrorSeverity.MEDIUM,
                f"{provider} server error: {error_str[:200]}",
            )

        if match(error_str, ErrorClassifier.NETWORK_PATTERNS):
            return build(
                ErrorCategory.NETWORK_ERROR,
                ErrorSeverity.LOW,
                f"Network issue calling {provider}: {error_str[:200]}",
            )

        if match(error_str, ErrorClassifier.EMPTY_RESPONSE_PATTERNS):
            return build(
                ErrorCategory.EMPTY_RESPONSE,
                ErrorSeverity.MEDIUM,
                f"{provider} returned no usable content: {error_str[:200]}",
            )

        if status_code == 400 or "invalid" in error_str.lower():
            return build(
                ErrorCategory.INVALID_REQUEST,
                ErrorSeverity.MEDIUM,
                f"Invalid request to {provider}: {error_str[:200]}",
            )

        return build(
            ErrorCategory.UNKNOWN,
            ErrorSeverity.MEDIUM,
            f"Unclassified error from {provider}: {error_str[:200]}",
        )

    @staticmethod
    def extract_status_code(error: Exception) -> Optional[int]:
        """Find an HTTP status code on the error or its response, if any."""
        for candidate in (
            getattr(error, "code", None),
            getattr(error, "status_code", None),
            getattr(getattr(error, "response", None), "status_code", None),
            getattr(getattr(error, "response", None), "status", None),
        ):
            code = ErrorClassifier._as_status(candidate)
            if code is not None:
                return code
        return None

    @staticmethod
    def extract_retry_in(error_message: str) -> Optional[float]:
        """Parse a "Please retry in N s" hint from the error text."""
        found = RETRY_IN_PATTERN.search(error_message)
        if not found:
            return None
        try:
            return float(found.group(1))
        except ValueError:
            return None

    @staticmethod
    def extract_retry_after(error: Exception) -> Optional[int]:
        """Read a retry-after header from the error's response, if present."""
        headers: Any = getattr(getattr(error, "response", None), "headers", None)
        if not headers:
            return None
        try:
            value = headers.get("retry-after") or headers.get("Retry-After")
        except AttributeError:
            return None
        if value is None:
            return None
        try:
            seconds = float(value)
        except (TypeError, ValueError):
            return None
        if math.isnan(seconds) or seconds < 0:
            return None
        return int(seconds)

    @staticmethod
    def _as_status(value: Any) -> Optional[int]:
        """Coerce an SDK status attribute to an HTTP status int."""
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, int) and 100 <= value <= 599:
            return value
        # grpc-style enums expose the numeric code on .value
        inner = getattr(value, "value", None)
        if isinstance(inner, int) and 100 <= inner <= 599:
            return inner
        return None

    @staticmethod
    def _match_patterns(text: str, patterns: list[str]) -> bool:
        """Check if text matches any of the given regex patterns.

        Args:
            text: Text to search
            patterns: List of regex patterns

        Returns:
            True if any pattern matches
        """
        for pattern in patterns:
            if re.search(pattern, text, re.IGNORECASE):
                return True
        return False
