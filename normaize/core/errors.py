"""
Exception taxonomy for the ingestion pipeline.

InvalidArgumentError, NotFoundError, FormatError and UnsupportedFormatError
reach the caller unchanged; anything unexpected is wrapped in ProcessingError.
"""


class IngestionError(Exception):
    """Base class for all ingestion pipeline errors."""


class InvalidArgumentError(IngestionError, ValueError):
    """Raised when a request or processing input has an invalid shape."""


class NotFoundError(IngestionError, LookupError):
    """Raised when a source file is absent from storage."""

    def __init__(self, message: str, path: str | None = None):
        self.path = path
        super().__init__(message)


class FormatError(IngestionError):
    """
    Raised when file content is malformed for its detected format.

    Attributes:
        file_format: Format the parser expected
        original: Underlying parser exception, if any
        fatal: Fatal errors abort processing instead of being
            recorded on a partial dataset
    """

    def __init__(
        self,
        message: str,
        file_format: str | None = None,
        original: Exception | None = None,
        fatal: bool = False,
    ):
        self.file_format = file_format
        self.original = original
        self.fatal = fatal
        super().__init__(message)


class UnsupportedFormatError(IngestionError):
    """Raised when no parser exists for the detected format."""

    def __init__(self, message: str, file_format: str | None = None):
        self.file_format = file_format
        super().__init__(message)


class StorageError(IngestionError):
    """Raised when the underlying storage port fails."""

    def __init__(self, message: str, target: str | None = None):
        self.target = target
        super().__init__(message)


class HashError(IngestionError):
    """Content hash failure. Absorbed by FileUtility, never surfaced."""


class ProcessingError(IngestionError):
    """Wraps an unexpected failure with operation, path and format details."""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        file_path: str | None = None,
        file_format: str | None = None,
    ):
        self.operation = operation
        self.file_path = file_path
        self.file_format = file_format
        super().__init__(message)


class OperationCancelledError(IngestionError):
    """Raised when a cancellation token is observed as cancelled."""


class ConfigurationError(IngestionError):
    """Raised at startup when settings are invalid."""


class InjectedFault(IngestionError):
    """Raised by chaos actions to simulate a failing dependency."""

    def __init__(self, message: str, scenario: str | None = None):
        self.scenario = scenario
        super().__init__(message)
