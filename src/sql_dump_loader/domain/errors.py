"""Domain exceptions for dump import jobs."""


class SqlImportError(Exception):
    """Base class for errors that terminate an import job."""

    kind = "ImportFailed"


class InvalidArchiveContentsError(SqlImportError):
    """Raised when the extracted workspace does not hold exactly one SQL file."""

    kind = "InvalidArchiveContents"


class ExtractionFailedError(SqlImportError):
    """Raised when the archive utility exits non-zero or cannot be started."""

    kind = "ExtractionFailed"


class ExecutionFailedError(SqlImportError):
    """Raised when a statement fails or the client process exits non-zero."""

    kind = "ExecutionFailed"


class NoRequestBodyError(Exception):
    """Raised when an upload request carries no readable body."""


class UploadTooLargeError(Exception):
    """Raised when an upload exceeds the configured body size limit."""


class ImportJobNotFoundError(Exception):
    """Raised when an import job cannot be found."""


class InvalidJobTransitionError(Exception):
    """Raised when a job state change would move backwards."""


__all__ = [
    "ExecutionFailedError",
    "ExtractionFailedError",
    "ImportJobNotFoundError",
    "InvalidArchiveContentsError",
    "InvalidJobTransitionError",
    "NoRequestBodyError",
    "SqlImportError",
    "UploadTooLargeError",
]
