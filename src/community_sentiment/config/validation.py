"""Configuration validation for the community sentiment pipeline."""

from __future__ import annotations

import logging

from .exceptions import ConfigError, ConfigValidationError
from .settings import Settings


class ConfigValidator:
    """Validates configuration settings before a run starts."""

    _BATCHING_KEYS = (
        'CLAUDE_BATCH_SIZE',
        'CLAUDE_MAX_TEXT_LENGTH',
        'OPENAI_BATCH_SIZE',
        'OPENAI_MAX_TEXT_LENGTH',
        'MAX_ATTEMPTS',
    )
    _PACING_KEYS = (
        'CLAUDE_PACING_SECONDS',
        'OPENAI_PACING_SECONDS',
        'INSIGHT_PACING_SECONDS',
        'FRAMEWORK_DELAY_SECONDS',
    )

    @staticmethod
    def validate_for_client(provider: str) -> None:
        """Validate configuration for specified provider.

        Args:
            provider: Provider name ('claude' or 'openai').

        Raises:
            ConfigValidationError: If required configuration is missing or invalid.
        """
        try:
            client_configs = Settings.get_client_required_configs(provider)
        except ConfigError as e:
            raise ConfigValidationError(str(e)) from e

        missing_configs = [key for key, value in client_configs.items() if not value]
        if not Settings.has_credentials(provider):
            credential_key = Settings.credential_key(provider)
            if credential_key not in missing_configs:
                missing_configs.append(credential_key)

        if missing_configs:
            raise ConfigValidationError(
                f'Missing required configuration for {provider} client: '
                f'{", ".join(missing_configs)}. Please set these in your '
                'environment variables or .env file.',
                missing_keys=missing_configs
            )

        logging.info('Configuration validation passed for %s client', provider)

    @staticmethod
    def validate_batching() -> None:
        """Validate batch sizes, truncation lengths and pacing delays.

        Raises:
            ConfigValidationError: If any value is out of range.
        """
        invalid = [
            key for key in ConfigValidator._BATCHING_KEYS
            if getattr(Settings, key) < 1
        ]
        invalid.extend(
            key for key in ConfigValidator._PACING_KEYS
            if getattr(Settings, key) < 0
        )
        if Settings.REQUEST_TIMEOUT <= 0:
            invalid.append('REQUEST_TIMEOUT')

        if invalid:
            raise ConfigValidationError(
                f'Invalid batching configuration: {", ".join(invalid)}',
                missing_keys=invalid,
            )

    @staticmethod
    def validate_all(provider: str) -> None:
        """Run every validation for a run against the given provider.

        Args:
            provider: Provider name ('claude' or 'openai').

        Raises:
            ConfigValidationError: If any validation fails.
        """
        ConfigValidator.validate_for_client(provider)
        ConfigValidator.validate_batching()
