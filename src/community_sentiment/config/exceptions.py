"""Configuration-related exceptions for the community sentiment pipeline."""


class ConfigError(Exception):
    """Base exception for configuration-related errors."""

    def __init__(self, message: str, config_key: str = None) -> None:
        """Initialize ConfigError.

        Args:
            message: Error message.
            config_key: Optional key related to the configuration error.
        """
        super().__init__(message)
        self.config_key = config_key


class ConfigValidationError(ConfigError):
    """Exception raised when configuration validation fails."""

    def __init__(self, message: str, missing_keys: list[str] = None) -> None:
        """Initialize ConfigValidationError.

        Args:
            message: Error message.
            missing_keys: List of missing configuration keys.
        """
        super().__init__(message)
        self.missing_keys = missing_keys or []


class NoProviderAvailableError(ConfigValidationError):
    """Exception raised when no analysis provider has a usable credential.

    This is the only failure that aborts a whole run, and it is raised
    before any batch is sent.
    """

    def __init__(
        self,
        message: str,
        checked_providers: list[str] = None,
        missing_keys: list[str] = None,
    ) -> None:
        """Initialize NoProviderAvailableError.

        Args:
            message: Error message.
            checked_providers: Providers whose credentials were inspected.
            missing_keys: Credential keys that were absent or placeholders.
        """
        super().__init__(message, missing_keys=missing_keys)
        self.checked_providers = checked_providers or []
