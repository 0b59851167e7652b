"""Configuration management for the community sentiment pipeline.

This package provides configuration management with environment variable
loading, provider credential checks, batching profiles and logging setup.
"""

from .exceptions import ConfigError, ConfigValidationError, NoProviderAvailableError
from .logging_setup import setup_logging
from .settings import ProviderProfile, Settings
from .validation import ConfigValidator

__all__ = [
    "ConfigError",
    "ConfigValidationError",
    "NoProviderAvailableError",
    "ProviderProfile",
    "Settings",
    "ConfigValidator",
    "setup_logging",
]
