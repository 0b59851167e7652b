"""Configuration settings for the community sentiment pipeline.

This module provides configuration management with environment variables loading,
credential checks and per-provider batching profiles.
"""

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

from .exceptions import ConfigError

# Load environment variables from .env file
load_dotenv()


@dataclass(frozen=True)
class ProviderProfile:
    """Batching and pacing budget for one analysis provider.

    Attributes:
        provider: Provider name ('claude' or 'openai').
        batch_size: Maximum number of texts sent in one provider call.
        max_text_length: Per-text truncation length in characters.
        pacing_seconds: Delay applied after each successful batch.
    """
    provider: str
    batch_size: int
    max_text_length: int
    pacing_seconds: float


class Settings:
    """Configuration settings for the community sentiment pipeline.

    Loads configuration from environment variables. Credentials that still hold
    the values shipped in example ``.env`` files are treated as absent.

    Attributes:
        ANTHROPIC_API_KEY: API key for Anthropic Claude (falls back to CLAUDE_API_KEY).
        OPENAI_API_KEY: API key for the OpenAI chat completions endpoint.
        CLAUDE_MODEL: Model name for the primary provider.
        OPENAI_MODEL: Model name for the fallback provider.
        OPENAI_ENDPOINT: Chat completions endpoint URL.
        PREFERRED_PROVIDER: Provider tried first when both have credentials.
        REQUEST_TIMEOUT: Client-level timeout for one provider call, in seconds.
        MAX_ATTEMPTS: Attempt ceiling per batch, including the first call.
        CLAUDE_BATCH_SIZE / OPENAI_BATCH_SIZE: Texts per batch.
        CLAUDE_MAX_TEXT_LENGTH / OPENAI_MAX_TEXT_LENGTH: Per-text truncation.
        CLAUDE_PACING_SECONDS / OPENAI_PACING_SECONDS: Inter-batch pacing.
        INSIGHT_PACING_SECONDS: Pacing between community insight requests.
        FRAMEWORK_DELAY_SECONDS: Pause before the framework report request.
        LOG_LEVEL: Default logging level.
    """

    SUPPORTED_PROVIDERS: tuple[str, ...] = ('claude', 'openai')
    PLACEHOLDER_KEYS: frozenset[str] = frozenset({
        'your_claude_api_key',
        'your_anthropic_api_key',
        'your_openai_api_key',
    })

    # API Configuration
    ANTHROPIC_API_KEY: str | None = os.getenv('ANTHROPIC_API_KEY') or os.getenv('CLAUDE_API_KEY')
    OPENAI_API_KEY: str | None = os.getenv('OPENAI_API_KEY')
    OPENAI_ENDPOINT: str = os.getenv('OPENAI_ENDPOINT', 'https://api.openai.com/v1/chat/completions')

    # Model Configuration
    CLAUDE_MODEL: str = os.getenv('CLAUDE_MODEL', 'claude-3-5-sonnet-20241022')
    OPENAI_MODEL: str = os.getenv('OPENAI_MODEL', 'gpt-3.5-turbo')
    PREFERRED_PROVIDER: str = os.getenv('PREFERRED_PROVIDER', 'claude')

    # Request Configuration
    REQUEST_TIMEOUT: float = float(os.getenv('REQUEST_TIMEOUT', '120'))
    MAX_ATTEMPTS: int = int(os.getenv('MAX_ATTEMPTS', '3'))

    # Batching Configuration
    CLAUDE_BATCH_SIZE: int = int(os.getenv('CLAUDE_BATCH_SIZE', '50'))
    CLAUDE_MAX_TEXT_LENGTH: int = int(os.getenv('CLAUDE_MAX_TEXT_LENGTH', '600'))
    CLAUDE_PACING_SECONDS: float = float(os.getenv('CLAUDE_PACING_SECONDS', '0.3'))
    OPENAI_BATCH_SIZE: int = int(os.getenv('OPENAI_BATCH_SIZE', '25'))
    OPENAI_MAX_TEXT_LENGTH: int = int(os.getenv('OPENAI_MAX_TEXT_LENGTH', '400'))
    OPENAI_PACING_SECONDS: float = float(os.getenv('OPENAI_PACING_SECONDS', '1.0'))
    INSIGHT_PACING_SECONDS: float = float(os.getenv('INSIGHT_PACING_SECONDS', '2.0'))
    FRAMEWORK_DELAY_SECONDS: float = float(os.getenv('FRAMEWORK_DELAY_SECONDS', '3.0'))

    # Logging Configuration
    LOG_LEVEL: str = os.getenv('LOG_LEVEL', 'INFO')

    @classmethod
    def _normalize_provider(cls, provider: str) -> str:
        """Return the lower-cased provider name.

        Raises:
            ConfigError: If the provider is unsupported.
        """
        name = (provider or '').strip().lower()
        if name not in cls.SUPPORTED_PROVIDERS:
            raise ConfigError(f'Unsupported provider: {provider}', config_key='PREFERRED_PROVIDER')
        return name

    @classmethod
    def credential_key(cls, provider: str) -> str:
        """Name of the environment variable holding the provider's credential."""
        return {
            'claude': 'ANTHROPIC_API_KEY',
            'openai': 'OPENAI_API_KEY',
        }[cls._normalize_provider(provider)]

    @classmethod
    def has_credentials(cls, provider: str) -> bool:
        """Check whether the provider has a usable (non-placeholder) credential.

        Args:
            provider: Provider name ('claude' or 'openai').

        Returns:
            True if a credential is set and is not a template placeholder.
        """
        value = getattr(cls, cls.credential_key(provider))
        if not value or not value.strip():
            return False
        return value.strip() not in cls.PLACEHOLDER_KEYS

    @classmethod
    def available_providers(cls) -> list[str]:
        """List providers with usable credentials, in default fallback order."""
        available = [p for p in cls.SUPPORTED_PROVIDERS if cls.has_credentials(p)]
        logging.debug('Providers with usable credentials: %s', available)
        return available

    @classmethod
    def get_provider_profile(cls, provider: str) -> ProviderProfile:
        """Get the batching profile for a provider.

        The primary provider has a larger context window, so it takes bigger
        batches and longer texts than the fallback.

        Args:
            provider: Provider name ('claude' or 'openai').

        Returns:
            The provider's ProviderProfile.

        Raises:
            ConfigError: If provider is unsupported.
        """
        provider = cls._normalize_provider(provider)
        if provider == 'claude':
            return ProviderProfile(
                provider='claude',
                batch_size=cls.CLAUDE_BATCH_SIZE,
                max_text_length=cls.CLAUDE_MAX_TEXT_LENGTH,
                pacing_seconds=cls.CLAUDE_PACING_SECONDS,
            )
        return ProviderProfile(
            provider='openai',
            batch_size=cls.OPENAI_BATCH_SIZE,
            max_text_length=cls.OPENAI_MAX_TEXT_LENGTH,
            pacing_seconds=cls.OPENAI_PACING_SECONDS,
        )

    @classmethod
    def get_client_required_configs(cls, provider: str) -> dict[str, str | None]:
        """Get required configurations for specified provider.

        Args:
            provider: Provider name ('claude' or 'openai').

        Returns:
            Dictionary of required configuration keys and their values.

        Raises:
            ConfigError: If provider is unsupported.
        """
        provider = cls._normalize_provider(provider)

        if provider == 'claude':
            return {
                'ANTHROPIC_API_KEY': cls.ANTHROPIC_API_KEY,
                'CLAUDE_MODEL': cls.CLAUDE_MODEL,
            }
        return {
            'OPENAI_API_KEY': cls.OPENAI_API_KEY,
            'OPENAI_MODEL': cls.OPENAI_MODEL,
            'OPENAI_ENDPOINT': cls.OPENAI_ENDPOINT,
        }
