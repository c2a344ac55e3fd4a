"""
Exception types for Scroll Guard.

Only ValidationError (and RateLimitExceeded at the tool layer) ever reach a
caller. ModelTransientError is recovered by the pipeline and ParseError never
leaves the response parser.
"""


class ScrollGuardError(Exception):
    """Base class for all Scroll Guard errors."""


class ValidationError(ScrollGuardError):
    """The analysis request is structurally invalid."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.message = message
        self.field = field


class ModelTransientError(ScrollGuardError):
    """The external model could not be reached or refused the call."""

    def __init__(self, message: str, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable


class ParseError(ScrollGuardError):
    """The model output held no recoverable analysis object."""


class RateLimitExceeded(ScrollGuardError):
    """A client exhausted its request budget for the current window."""

    def __init__(self, client_id: str, retry_after_seconds: int):
        super().__init__(f"Too many requests from {client_id}")
        self.client_id = client_id
        self.retry_after_seconds = retry_after_seconds
