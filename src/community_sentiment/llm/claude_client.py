"""Claude client implementation using the Anthropic Messages API."""

from __future__ import annotations

import logging
from typing import Any, ClassVar

import anthropic
import tiktoken

from .base_client import Client
from .exceptions import (
    APIError,
    AuthenticationError,
    LLMClientError,
    LLMConnectionError,
    RateLimitError,
)


class ClaudeClient(Client):
    """Primary analysis provider backed by Anthropic Claude.

    Has the larger context window of the two providers. The SDK's built-in
    retries are disabled; retrying is owned by the RetryController.
    """

    MAX_ALLOWED_TOKENS: ClassVar[int] = 8192
    DEFAULT_TEMPERATURE: ClassVar[float] = 0.0
    DEFAULT_TIMEOUT: ClassVar[float] = 120.0

    def __init__(
        self,
        api_key: str,
        model: str,
        *,
        max_tokens: int | None = None,
        temperature: float | None = None,
        timeout: float | None = None,
    ) -> None:
        """Initialize a Claude client.

        Args:
            api_key: Anthropic API key.
            model: Claude model to use.
            max_tokens: Maximum tokens in response (defaults to MAX_ALLOWED_TOKENS)
            temperature: Response randomness (0.0-1.0, defaults to DEFAULT_TEMPERATURE)
            timeout: Per-request timeout in seconds (defaults to DEFAULT_TIMEOUT)

        Raises:
            ValueError: If required parameters are missing or invalid.
            LLMClientError: If client initialization fails.
        """
        if not api_key:
            raise ValueError('API key must be provided for ClaudeClient.')
        if not model:
            raise ValueError('Model must be provided for ClaudeClient.')
        if max_tokens is None:
            max_tokens = self.MAX_ALLOWED_TOKENS
        if not (1 <= max_tokens <= self.MAX_ALLOWED_TOKENS):
            raise ValueError(
                f'max_tokens must be between 1 and {self.MAX_ALLOWED_TOKENS}'
            )
        if temperature is None:
            temperature = self.DEFAULT_TEMPERATURE
        if not (0.0 <= temperature <= 1.0):
            raise ValueError('temperature must be between 0.0 and 1.0')
        if timeout is None:
            timeout = self.DEFAULT_TIMEOUT
        if timeout <= 0:
            raise ValueError('timeout must be > 0.')

        super().__init__(model)

        self.api_key = api_key
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout = timeout

        try:
            self.client = anthropic.Anthropic(
                api_key=api_key, max_retries=0, timeout=timeout
            )
            self.async_client = anthropic.AsyncAnthropic(
                api_key=api_key, max_retries=0, timeout=timeout
            )
            # Approximate count only; Claude's own tokenizer is not public
            self.tokenizer = tiktoken.get_encoding('cl100k_base')
        except Exception as e:
            raise LLMClientError(
                f'Failed to initialize Claude client: {e}',
                client_type=self.client_type,
                operation='initialization'
            ) from e
        logging.info(
            'Claude Client initialized with model=%s, max_tokens=%d, temperature=%.2f',
            model,
            max_tokens,
            temperature
        )

    def _count_tokens(self, text: str) -> int:
        """Count tokens in text using tiktoken.

        Args:
            text: Text to count tokens for.

        Returns:
            Number of tokens in the text.
        """
        try:
            return len(self.tokenizer.encode(text))
        except Exception as e:
            logging.debug('Token counting failed: %s', e, exc_info=True)
            return 0

    @staticmethod
    def _system_message() -> str:
        """Get the system message for sentiment analysis.

        Returns:
            System message string.
        """
        return (
            'You are a sentiment analysis expert for online community discussions. '
            'You answer with pure JSON only, without explanations or markdown.'
        )

    def _message_payload(
        self,
        prompt: str,
        *,
        max_tokens: int | None = None,
    ) -> dict[str, Any]:
        """Build a non-streaming Messages.create params object.

        Args:
            prompt: The input prompt to send to the Claude model.
            max_tokens: Optional override for the maximum response tokens.

        Returns:
          A dictionary matching the Messages API schema.
        """
        return {
            "model": self.model,
            "system": self._system_message(),
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": max_tokens if max_tokens is not None else self.max_tokens,
            "temperature": self.temperature,
        }

    def _translate_error(self, exc: Exception, *, operation: str) -> LLMClientError:
        """Map an Anthropic SDK exception onto the client error hierarchy.

        Args:
            exc: The caught exception.
            operation: The operation being performed when the error occurred.

        Returns:
            The matching LLMClientError subclass instance.
        """
        if isinstance(exc, anthropic.AuthenticationError):
            return AuthenticationError(
                f'Claude authentication failed: {exc}',
                client_type=self.client_type,
                operation=operation
            )
        if isinstance(exc, anthropic.RateLimitError):
            headers = getattr(getattr(exc, 'response', None), 'headers', None) or {}
            return RateLimitError(
                f'Claude API rate limit exceeded: {exc}',
                client_type=self.client_type,
                operation=operation,
                retry_after=self._parse_retry_after(headers.get('retry-after')),
                limit_type='requests',
            )
        if isinstance(exc, anthropic.APITimeoutError):
            return APIError(
                f'Claude API call timed out after {self.timeout}s',
                client_type=self.client_type,
                operation=operation,
            )
        if isinstance(exc, anthropic.APIConnectionError):
            return LLMConnectionError(
                f'Failed to connect to Claude API: {exc}',
                client_type=self.client_type,
                operation=operation,
            )
        if isinstance(exc, anthropic.APIStatusError):
            return APIError(
                f'Claude API error: {exc}',
                client_type=self.client_type,
                operation=operation,
                status_code=exc.status_code,
                request_id=getattr(exc, 'request_id', None),
            )
        if isinstance(exc, anthropic.APIError):
            return APIError(
                f'Claude API error: {exc}',
                client_type=self.client_type,
                operation=operation,
                status_code=getattr(exc, 'status_code', None),
            )
        return LLMClientError(
            f'Claude API call failed: {exc}',
            client_type=self.client_type,
            operation=operation
        )

    def _response_text(self, response: Any, *, operation: str) -> str:
        """Extract text from a response or raise if it is empty."""
        text = self._extract_response_text_from_message(response)
        if not text:
            raise APIError(
                'Empty response received from Claude API',
                client_type=self.client_type,
                operation=operation
            )
        return text

    # ------------------------------------------------------------------ #
    # Sync single call
    # ------------------------------------------------------------------ #
    def call(self, prompt: str, *, max_tokens: int | None = None) -> str:
        """Call Claude API synchronously with the given prompt.

        Args:
            prompt: The input prompt to send to the Claude model.
            max_tokens: Optional override for the response token budget.

        Returns:
            The response text from the Claude model.

        Raises:
            LLMValidationError: If the prompt is empty.
            APIError: If API call fails.
            AuthenticationError: If API key is invalid.
            RateLimitError: If rate limit is exceeded.
            LLMConnectionError: On network failures.
            LLMClientError: If processing fails.
        """
        self._validate_prompt(prompt)

        logging.info('Prompt Token Count: %d', self._count_tokens(prompt))
        payload = self._message_payload(prompt, max_tokens=max_tokens)

        try:
            response = self.client.messages.create(**payload)
        except Exception as e:
            raise self._translate_error(e, operation='single_call') from e

        text = self._response_text(response, operation='single_call')
        logging.info('Received Claude response (length: %d)', len(text))
        return text

    # ------------------------------------------------------------------ #
    # Async single call
    # ------------------------------------------------------------------ #
    async def call_async(self, prompt: str, *, max_tokens: int | None = None) -> str:
        """Call Claude API asynchronously with the given prompt.

        Args:
            prompt: The input prompt to send to the Claude model.
            max_tokens: Optional override for the response token budget.

        Returns:
            The response text from the Claude model.

        Raises:
            LLMValidationError: If the prompt is empty.
            APIError: If API call fails.
            AuthenticationError: If API key is invalid.
            RateLimitError: If rate limit is exceeded.
            LLMConnectionError: On network failures.
            LLMClientError: If processing fails.
        """
        self._validate_prompt(prompt)

        logging.info('Async prompt Token Count: %d', self._count_tokens(prompt))
        payload = self._message_payload(prompt, max_tokens=max_tokens)

        try:
            response = await self.async_client.messages.create(**payload)
        except Exception as e:
            raise self._translate_error(e, operation='async_single_call') from e

        text = self._response_text(response, operation='async_single_call')
        logging.info('Received async Claude response (length: %d)', len(text))
        return text

    # ------------------------------------------------------------------ #
    # Message parsing helpers
    # ------------------------------------------------------------------ #
    @staticmethod
    def _extract_response_text_from_message(msg: Any) -> str:
        """Extract plain text from an Anthropic message object.

        Args:
            msg: Anthropic message object (or an equivalent dict).

        Returns:
            The extracted text content, or empty string if not found.
        """
        if msg is None:
            return ""

        content = ClaudeClient._get_field(msg, "content")

        if isinstance(content, str):
            return content

        # Only consume text blocks; ignore tool/thinking blocks
        if isinstance(content, list):
            text_parts: list[str] = []
            for block in content:
                if ClaudeClient._get_field(block, "type") == "text":
                    text = ClaudeClient._get_field(block, "text")
                    if isinstance(text, str) and text:
                        text_parts.append(text)
            if text_parts:
                return "".join(text_parts)

        text = getattr(msg, "text", None)
        if isinstance(text, str):
            return text

        return ""

    @staticmethod
    def _get_field(obj: Any, field_name: str) -> Any:
        """Helper to safely retrieve a field from an object or dict.

        Tries attribute access first (SDK/Pydantic objects),
        then dict key lookup.

        Args:
            obj: The object or dict to extract from.
            field_name: The field name to get.

        Returns:
            The field value, or None if not found.
        """
        val = getattr(obj, field_name, None)
        if val is None and isinstance(obj, dict):
            val = obj.get(field_name)
        return val
