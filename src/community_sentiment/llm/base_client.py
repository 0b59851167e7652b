"""Base analysis provider client.

Defines the interface shared by the two analysis providers: one synchronous
and one asynchronous single-call API, plus a connectivity check.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import ClassVar

from .exceptions import LLMValidationError


@dataclass
class ConnectionCheck:
    """Result of a provider connectivity check.

    Attributes:
        success: Whether the provider answered.
        message: Human-readable outcome.
        details: Provider reply text on success.
    """
    success: bool
    message: str
    details: str | None = None


class Client(ABC):
    """Abstract base class for analysis provider clients.

    Each provider sends one prompt per call and returns the raw completion
    text. Clients hold no state between calls beyond their configuration.
    """

    CONNECTION_TEST_PROMPT: ClassVar[str] = (
        'Just respond with "API test successful" to confirm the connection.'
    )
    CONNECTION_TEST_MAX_TOKENS: ClassVar[int] = 50

    def __init__(self, model: str) -> None:
        """Initialize the client with the model name.

        Args:
            model: The name of the model to use.

        Raises:
            ValueError: If model is empty or None.
        """
        if not model:
            raise ValueError('Model name cannot be empty or None')

        self.model = model
        logging.info(
            'Initializing analysis client %s with model %s',
            self.__class__.__name__,
            self.model,
        )

    @property
    def client_type(self) -> str:
        """Return the type of client (e.g., 'claude', 'openai')."""
        return self.__class__.__name__.removesuffix('Client').lower()

    @staticmethod
    def _validate_prompt(prompt: str) -> None:
        """Validate prompt input.

        Args:
            prompt: Input prompt to validate.

        Raises:
            LLMValidationError: If prompt is empty or invalid.
        """
        if not prompt or not prompt.strip():
            raise LLMValidationError('Prompt must not be empty.', operation='validate', field='prompt')

    @staticmethod
    def _parse_retry_after(value: str | None) -> float | None:
        """Parse a Retry-After header given in seconds.

        Args:
            value: Raw header value, if any.

        Returns:
            Seconds to wait, or None if absent or not numeric.
        """
        if value is None:
            return None
        try:
            seconds = float(value)
        except (TypeError, ValueError):
            return None
        return seconds if seconds >= 0 else None

    @abstractmethod
    def call(self, prompt: str, *, max_tokens: int | None = None) -> str:
        """Performs a synchronous call to the provider.

        Args:
            prompt: The input prompt to send.
            max_tokens: Optional override for the response token budget.

        Returns:
            The raw response text from the model.

        Raises:
            LLMValidationError: If prompt is empty.
            LLMClientError: If API call fails.
        """

    @abstractmethod
    async def call_async(self, prompt: str, *, max_tokens: int | None = None) -> str:
        """Performs an asynchronous call to the provider.

        Args:
            prompt: The input prompt to send.
            max_tokens: Optional override for the response token budget.

        Returns:
            The raw response text from the model.

        Raises:
            LLMValidationError: If prompt is empty.
            LLMClientError: If API call fails.
        """

    def check_connection(self) -> ConnectionCheck:
        """Send a tiny prompt to confirm the credential and endpoint work.

        Returns:
            A ConnectionCheck describing the outcome. Never raises for
            provider failures.
        """
        try:
            reply = self.call(
                self.CONNECTION_TEST_PROMPT,
                max_tokens=self.CONNECTION_TEST_MAX_TOKENS,
            )
        except Exception as e:
            logging.warning('%s connection test failed: %s', self.client_type, e)
            return ConnectionCheck(
                success=False,
                message=f'{self.client_type} API test failed: {e}',
            )
        return ConnectionCheck(
            success=True,
            message=f'{self.client_type} API connection successful',
            details=reply.strip(),
        )
