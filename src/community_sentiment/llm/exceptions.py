"""Exception classes for analysis provider operations.

This module provides a hierarchy of exception classes for handling the error
conditions that can occur while sending a batch to an analysis provider.

The exception hierarchy follows a structured approach:
- LLMClientError: Base class for all provider-related errors
- APIError: HTTP API communication failures (carries the status code)
- RateLimitError: API rate limiting (HTTP 429)
- LLMConnectionError: Network connectivity issues
- AuthenticationError: API key/authentication failures
- LLMValidationError: Request rejected before it was sent
- ProviderTransientError: Retryable failure that persisted past the attempt ceiling
"""

from __future__ import annotations

from typing import Any

# Anthropic reports "overloaded" with this non-standard status code.
OVERLOADED_STATUS_CODE = 529


class LLMClientError(Exception):
    """Base exception class for all provider operations.

    This serves as the root exception for all provider-related errors, providing
    common attributes for error context tracking.
    """

    def __init__(
        self,
        message: str,
        *,
        client_type: str | None = None,
        operation: str | None = None,
    ) -> None:
        """Initialize LLMClientError with context information.

        Args:
            message: Descriptive error message.
            client_type: Type of client ('claude', 'openai').
            operation: Operation being performed when error occurred.
        """
        super().__init__(message)
        self.client_type = client_type
        self.operation = operation

    def __str__(self) -> str:
        """Return formatted error message with context."""
        parts = [super().__str__()]
        if self.client_type:
            parts.append(f'Client: {self.client_type}')
        if self.operation:
            parts.append(f'Operation: {self.operation}')
        return ' | '.join(parts)


class APIError(LLMClientError):
    """Exception for HTTP API communication errors.

    Raised when provider calls fail due to HTTP errors, invalid responses,
    or other API-specific issues.
    """

    def __init__(
        self,
        message: str,
        *,
        client_type: str | None = None,
        operation: str | None = None,
        status_code: int | None = None,
        response_text: str | None = None,
        request_id: str | None = None
    ) -> None:
        """Initialize APIError with detailed API context.

        Args:
            message: Descriptive error message.
            client_type: Type of client ('claude', 'openai').
            operation: Operation being performed when error occurred.
            status_code: HTTP status code from the API response.
            response_text: Raw response text from the API.
            request_id: Unique request identifier for debugging.
        """
        super().__init__(message, client_type=client_type, operation=operation)
        self.status_code = status_code
        self.response_text = response_text
        self.request_id = request_id

    @property
    def is_overloaded(self) -> bool:
        """True when the provider reported itself overloaded."""
        return self.status_code == OVERLOADED_STATUS_CODE

    def is_retryable(self) -> bool:
        """Check if the API error is potentially retryable.

        Returns:
            True if the error might succeed on retry (429/408/5xx errors).
        """
        sc = self.status_code
        if sc is None:
            return False
        return sc == 429 or sc == 408 or (500 <= sc <= 599)


class LLMConnectionError(LLMClientError):
    """Exception for network connectivity issues.

    Raised when the client cannot establish or maintain a connection
    to the provider.
    """

    def __init__(
        self,
        message: str,
        *,
        client_type: str | None = None,
        operation: str | None = None,
        endpoint: str | None = None
    ) -> None:
        """Initialize LLMConnectionError with network context.

        Args:
            message: Descriptive error message.
            client_type: Type of client ('claude', 'openai').
            operation: Operation being performed when error occurred.
            endpoint: API endpoint that failed to connect.
        """
        super().__init__(message, client_type=client_type, operation=operation)
        self.endpoint = endpoint


class AuthenticationError(LLMClientError):
    """Exception for API authentication and authorization failures.

    Raised when API key is invalid, missing, or lacks required permissions.
    """


class RateLimitError(APIError):
    """Exception for API rate limiting errors.

    Raised when the client exceeds the API's rate limits.
    """

    def __init__(
        self,
        message: str,
        *,
        client_type: str | None = None,
        operation: str | None = None,
        retry_after: float | None = None,
        limit_type: str | None = None
    ) -> None:
        """Initialize RateLimitError with rate limit context.

        Args:
            message: Descriptive error message.
            client_type: Type of client ('claude', 'openai').
            operation: Operation being performed when error occurred.
            retry_after: Seconds to wait before retrying (if provided by API).
            limit_type: Type of rate limit hit ('requests', 'tokens', etc.).
        """
        super().__init__(
            message,
            client_type=client_type,
            operation=operation,
            status_code=429
        )
        self.retry_after = retry_after
        self.limit_type = limit_type


class LLMValidationError(LLMClientError):
    """Exception for request validation failures.

    Raised when client requests fail validation before being sent to the API.
    """

    def __init__(
        self,
        message: str,
        *,
        client_type: str | None = None,
        operation: str | None = None,
        field: str | None = None,
        value: Any = None
    ) -> None:
        """Initialize LLMValidationError with validation context.

        Args:
            message: Descriptive error message.
            client_type: Type of client ('claude', 'openai').
            operation: Operation being performed when error occurred.
            field: Name of the field that failed validation.
            value: Value that failed validation.
        """
        super().__init__(message, client_type=client_type, operation=operation)
        self.field = field
        self.value = value


class ProviderTransientError(LLMClientError):
    """Exception raised when a retryable failure outlasts the attempt ceiling.

    The original provider error is available as ``__cause__``.
    """

    def __init__(
        self,
        message: str,
        *,
        client_type: str | None = None,
        operation: str | None = None,
        failure_class: str | None = None,
        attempts: int = 0,
    ) -> None:
        """Initialize ProviderTransientError.

        Args:
            message: Descriptive error message.
            client_type: Type of client ('claude', 'openai').
            operation: Operation being performed when error occurred.
            failure_class: Classification of the last failure.
            attempts: Number of attempts made before giving up.
        """
        super().__init__(message, client_type=client_type, operation=operation)
        self.failure_class = failure_class
        self.attempts = attempts
