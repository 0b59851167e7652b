"""Analysis provider clients for the community sentiment pipeline.

This package provides the two interchangeable provider implementations
(Claude as primary, OpenAI as fallback), provider selection, and the
bounded retry controller wrapped around every provider call.
"""

from .base_client import Client, ConnectionCheck
from .claude_client import ClaudeClient
from .openai_client import OpenAIClient
from .factory import create_llm_client, select_provider
from .retry import FailureClass, RetryController, RetryPolicy, classify_failure
from .exceptions import (
    APIError,
    AuthenticationError,
    LLMClientError,
    LLMConnectionError,
    LLMValidationError,
    ProviderTransientError,
    RateLimitError,
)

__all__ = [
    "Client",
    "ConnectionCheck",
    "ClaudeClient",
    "OpenAIClient",
    "create_llm_client",
    "select_provider",
    "FailureClass",
    "RetryController",
    "RetryPolicy",
    "classify_failure",
    "LLMClientError",
    "APIError",
    "AuthenticationError",
    "LLMConnectionError",
    "LLMValidationError",
    "ProviderTransientError",
    "RateLimitError",
]
