"""Exception hierarchy for the MCQ service."""

from typing import Optional


class MCQServiceError(Exception):
    """Base class for request-level failures raised by the service."""


class AllModelsFailedError(MCQServiceError):
    """Raised when every candidate model has been exhausted.

    Attributes:
        last_error: The last failure observed before giving up
    """

    def __init__(self, last_error: Optional[BaseException] = None):
        self.last_error = last_error
        detail = str(last_error) if last_error is not None else "Unknown error"
        super().__init__(f"All models failed. Last error: {detail}")


class MalformedOutputError(MCQServiceError):
    """Raised when model output cannot be parsed or normalized into records.

    Attributes:
        raw_excerpt: Leading slice of the offending output, for logging
    """

    def __init__(self, message: str, raw_excerpt: str = ""):
        self.raw_excerpt = raw_excerpt
        super().__init__(message)


class ExtractionError(MCQServiceError):
    """Raised when text cannot be extracted from an uploaded document."""


class UnsupportedMediaTypeError(MCQServiceError):
    """Raised when an attachment's media type is not accepted."""
