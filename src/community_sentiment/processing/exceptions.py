"""Processing-related exceptions for the community sentiment pipeline."""


class ProcessingError(Exception):
    """Base exception for processing-related errors."""

    def __init__(self, message: str, record_id: str = None) -> None:
        """Initialize ProcessingError.

        Args:
            message: Error message.
            record_id: Optional post/batch identifier related to the error.
        """
        super().__init__(message)
        self.record_id = record_id


class ValidationError(ProcessingError):
    """Exception raised when input record validation fails."""

    def __init__(
            self,
            message: str,
            record_id: str = None,
            missing_fields: list[str] = None,
    ) -> None:
        """Initialize ValidationError.

        Args:
            message: Error message.
            record_id: Optional record identifier.
            missing_fields: Optional list of missing required fields.
        """
        super().__init__(message, record_id)
        self.missing_fields = missing_fields or []


class MalformedResponseError(ProcessingError):
    """Exception raised when a recovery strategy cannot parse a provider response.

    Never escapes ResponseParser.parse(); the terminal placeholder absorbs it.
    """

    def __init__(
            self,
            message: str,
            strategy: str = None,
            content: str = None,
    ) -> None:
        """Initialize MalformedResponseError.

        Args:
            message: Error message.
            strategy: Name of the recovery strategy that failed.
            content: Optional content that failed to parse.
        """
        super().__init__(message)
        self.strategy = strategy
        self.content = content
