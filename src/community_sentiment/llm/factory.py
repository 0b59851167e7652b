"""Provider selection and client factory."""

from __future__ import annotations

import logging

from ..config.exceptions import NoProviderAvailableError
from ..config.settings import Settings
from .base_client import Client
from .claude_client import ClaudeClient
from .exceptions import LLMClientError
from .openai_client import OpenAIClient


def select_provider(preferred: str | None = None) -> str:
    """Choose the provider for a run.

    The preferred provider wins when it has a usable credential; otherwise the
    first available provider in fallback order is used. The choice is made
    once per run and not revisited per batch.

    Args:
        preferred: Provider name to try first; defaults to Settings.PREFERRED_PROVIDER.

    Returns:
        The selected provider name.

    Raises:
        NoProviderAvailableError: If no provider has a usable credential.
    """
    preferred = (preferred or Settings.PREFERRED_PROVIDER or '').strip().lower()

    if preferred in Settings.SUPPORTED_PROVIDERS and Settings.has_credentials(preferred):
        logging.info('Using preferred provider: %s', preferred)
        return preferred

    available = Settings.available_providers()
    if available:
        if preferred:
            logging.warning(
                'Preferred provider %r unavailable, falling back to %s',
                preferred,
                available[0],
            )
        return available[0]

    raise NoProviderAvailableError(
        'No valid AI API keys provided. Please check your .env file.',
        checked_providers=list(Settings.SUPPORTED_PROVIDERS),
        missing_keys=[Settings.credential_key(p) for p in Settings.SUPPORTED_PROVIDERS],
    )


def create_llm_client(provider: str) -> Client:
    """Factory function to create provider clients from Settings.

    Args:
        provider: Type of client ('claude' or 'openai').

    Returns:
        Initialized provider client.

    Raises:
        ValueError: If provider is empty.
        LLMClientError: If provider is unsupported or initialization fails.
    """
    if not provider:
        raise ValueError('provider must be provided')

    provider = provider.lower().strip()
    try:
        if provider == 'claude':
            return ClaudeClient(
                api_key=Settings.ANTHROPIC_API_KEY,
                model=Settings.CLAUDE_MODEL,
                timeout=Settings.REQUEST_TIMEOUT,
            )
        elif provider == 'openai':
            return OpenAIClient(
                api_key=Settings.OPENAI_API_KEY,
                model=Settings.OPENAI_MODEL,
                endpoint=Settings.OPENAI_ENDPOINT,
                timeout=Settings.REQUEST_TIMEOUT,
            )
        else:
            raise LLMClientError(
                f'Unsupported client type: {provider}. '
                f'Supported types: {", ".join(Settings.SUPPORTED_PROVIDERS)}',
                client_type=provider,
                operation='factory_creation',
            )
    except LLMClientError:
        raise
    except Exception as e:
        logging.error('Unexpected error creating %s client: %s', provider, e, exc_info=True)
        raise LLMClientError(
            f'Failed to create {provider} client: {e}',
            client_type=provider,
            operation='factory_creation',
        ) from e
