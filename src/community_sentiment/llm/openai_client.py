"""OpenAI client implementation for the chat completions HTTP endpoint."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from typing import Any, TYPE_CHECKING

import aiohttp
import requests

from .base_client import Client
from .exceptions import (
    APIError,
    AuthenticationError,
    LLMClientError,
    LLMConnectionError,
    RateLimitError,
)

if TYPE_CHECKING:  # Only for type-checkers; not needed at runtime.
    from aiohttp import ClientTimeout


class OpenAIClient(Client):
    """Fallback analysis provider backed by the OpenAI chat completions API.

    Has a smaller context budget than the primary provider, so the pipeline
    sends it smaller batches with shorter texts.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        *,
        endpoint: str = 'https://api.openai.com/v1/chat/completions',
        timeout: float = 120.0,
        max_tokens: int = 4000,
        temperature: float = 0.3
    ) -> None:
        """Initialize OpenAI client.

        Args:
            api_key: OpenAI API key, sent as a Bearer token.
            model: Chat model to use.
            endpoint: Chat completions endpoint URL.
            timeout: Request timeout in seconds.
            max_tokens: Maximum tokens in response.
            temperature: Response randomness (0.0-2.0).

        Raises:
            ValueError: If required parameters are missing.
        """
        if not api_key:
            raise ValueError('API key must be provided for OpenAIClient.')
        if not model:
            raise ValueError('Model must be provided for OpenAIClient.')
        if not endpoint:
            raise ValueError('Endpoint must be provided for OpenAIClient.')
        if timeout <= 0:
            raise ValueError('timeout must be > 0.')
        if max_tokens < 1:
            raise ValueError('max_tokens must be >= 1.')
        if not (0.0 <= temperature <= 2.0):
            raise ValueError('temperature must be in [0.0, 2.0].')

        super().__init__(model)

        self.api_key = api_key
        self.endpoint = endpoint.rstrip('/')
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.temperature = temperature

        logging.info(
            'OpenAI Client initialized with model=%s, endpoint=%s, timeout=%.0fs',
            model,
            self.endpoint,
            self.timeout,
        )

    def _build_headers(self) -> dict[str, str]:
        """Build headers for API request.

        Returns:
            Dictionary of headers.
        """
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _build_payload(self, prompt: str, max_tokens: int | None = None) -> dict[str, Any]:
        """Build payload for API request.

        Args:
            prompt: Input prompt text.
            max_tokens: Optional override for the response token budget.

        Return:
           Dictionary of payload
        """
        return {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": max_tokens if max_tokens is not None else self.max_tokens,
            "temperature": self.temperature,
        }

    def _extract_text_from_json(self, obj: dict[str, Any]) -> str:
        """Extracts the completion text from a chat completions response.

        Args:
          obj: Parsed JSON.

        Returns:
          The textual response.

        Raises:
          APIError: If the response does not contain the expected field.
        """
        try:
            text = obj['choices'][0]['message']['content']
        except (KeyError, IndexError, TypeError):
            text = None
        if not isinstance(text, str) or not text:
            raise APIError(
                'Invalid or empty response payload.',
                client_type=self.client_type,
                status_code=None,
            )
        return text

    def _status_error(
        self,
        status: int,
        body: str,
        headers: Mapping[str, str],
        *,
        operation: str,
    ) -> LLMClientError:
        """Map a non-2xx HTTP response onto the client error hierarchy.

        Args:
            status: HTTP status code.
            body: Raw response body.
            headers: Response headers.
            operation: The operation being performed.

        Returns:
            The matching LLMClientError subclass instance.
        """
        if status in (401, 403):
            return AuthenticationError(
                f'OpenAI authentication failed (HTTP {status})',
                client_type=self.client_type,
                operation=operation,
            )
        if status == 429:
            return RateLimitError(
                'OpenAI API rate limit exceeded',
                client_type=self.client_type,
                operation=operation,
                retry_after=self._parse_retry_after(headers.get('Retry-After')),
                limit_type='requests',
            )
        return APIError(
            f'OpenAI API request failed with HTTP {status}',
            client_type=self.client_type,
            operation=operation,
            status_code=status,
            response_text=body,
        )

    # ----------------------------------------------------------------------
    # Synchronous single-call
    # ----------------------------------------------------------------------
    def call(self, prompt: str, *, max_tokens: int | None = None) -> str:
        """Call the chat completions API with the given prompt.

        Args:
            prompt: The input prompt to send to the model.
            max_tokens: Optional override for the response token budget.

        Returns:
            The response text from the model.

        Raises:
            LLMValidationError: If the prompt is empty.
            AuthenticationError: If API key is rejected.
            RateLimitError: If rate limit is exceeded.
            APIError: For other HTTP/API errors.
            LLMConnectionError: On network failures.
            LLMClientError: If processing fails.
        """
        self._validate_prompt(prompt)

        headers = self._build_headers()
        payload = self._build_payload(prompt, max_tokens)

        logging.info('Sending request to OpenAI (prompt length: %d)', len(prompt))

        try:
            response = requests.post(
                self.endpoint,
                json=payload,
                headers=headers,
                timeout=self.timeout
            )
            if response.status_code >= 400:
                raise self._status_error(
                    response.status_code,
                    response.text,
                    response.headers,
                    operation='single_call',
                )
            response_text = self._extract_text_from_json(response.json())

            logging.info('Received OpenAI response (length: %d)', len(response_text))
            return response_text

        except LLMClientError:
            raise
        except requests.exceptions.Timeout as e:
            error_msg = f'OpenAI API call timed out after {self.timeout}s'
            logging.error('%s: %s', error_msg, e)
            raise APIError(
                error_msg,
                client_type=self.client_type,
                operation='single_call'
            ) from e
        except requests.exceptions.ConnectionError as e:
            error_msg = f'Failed to connect to OpenAI endpoint: {self.endpoint}'
            logging.error('%s: %s', error_msg, e)
            raise LLMConnectionError(
                error_msg,
                client_type=self.client_type,
                operation='single_call',
                endpoint=self.endpoint
            ) from e
        except requests.exceptions.RequestException as e:
            error_msg = f'OpenAI API request failed: {e}'
            logging.error(error_msg, exc_info=True)
            raise APIError(
                error_msg,
                client_type=self.client_type,
                operation='single_call',
            ) from e
        except (json.JSONDecodeError, ValueError) as e:
            error_msg = f'Invalid JSON response from OpenAI API: {e}'
            logging.error(error_msg)
            raise APIError(
                error_msg,
                client_type=self.client_type,
                operation='single_call',
            ) from e

    # ----------------------------------------------------------------------
    # Asynchronous single-call
    # ----------------------------------------------------------------------
    async def call_async(self, prompt: str, *, max_tokens: int | None = None) -> str:
        """Call the chat completions API asynchronously.

        Args:
            prompt: The input prompt to send to the model.
            max_tokens: Optional override for the response token budget.

        Returns:
            The response text from the model.

        Raises:
            LLMValidationError: If the prompt is empty.
            AuthenticationError: If API key is rejected.
            RateLimitError: If rate limit is exceeded.
            APIError: For other HTTP/API errors.
            LLMConnectionError: On network failures.
            LLMClientError: If processing fails.
        """
        self._validate_prompt(prompt)

        headers = self._build_headers()
        payload = self._build_payload(prompt, max_tokens)

        timeout_config: ClientTimeout = aiohttp.ClientTimeout(total=self.timeout)

        logging.info('Sending async request to OpenAI (prompt length: %d)', len(prompt))

        try:
            async with aiohttp.ClientSession(timeout=timeout_config) as session:
                async with session.post(
                    url=self.endpoint,
                    json=payload,
                    headers=headers,
                ) as response:
                    if response.status >= 400:
                        body = await response.text()
                        raise self._status_error(
                            response.status,
                            body,
                            response.headers,
                            operation='async_single_call',
                        )
                    data = await response.json()

            response_text = self._extract_text_from_json(data)

            logging.info('Received async OpenAI response (length: %d)', len(response_text))
            return response_text

        except LLMClientError:
            raise
        except asyncio.TimeoutError as e:
            error_msg = f'OpenAI API request timed out after {self.timeout}s'
            logging.error('%s: %s', error_msg, e)
            raise APIError(
                error_msg,
                client_type=self.client_type,
                operation='async_single_call',
            ) from e
        except aiohttp.ClientConnectorError as e:
            error_msg = f'Failed to connect to OpenAI endpoint: {self.endpoint}'
            logging.error('%s: %s', error_msg, e)
            raise LLMConnectionError(
                error_msg,
                client_type=self.client_type,
                operation='async_single_call',
                endpoint=self.endpoint,
            ) from e
        except (aiohttp.ClientError, json.JSONDecodeError) as e:
            error_msg = f'OpenAI API client error: {e}'
            logging.error(error_msg, exc_info=True)
            raise APIError(
                error_msg,
                client_type=self.client_type,
                operation='async_single_call',
            ) from e
