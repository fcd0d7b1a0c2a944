"""Domain exceptions and their HTTP status mapping."""

from typing import Optional


class RedirectFixerError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(RedirectFixerError):
    """Bad or missing input, or an operation requested in the wrong state."""

    status_code = 400


class NotFoundError(RedirectFixerError):
    """Unknown or expired crawl session."""

    status_code = 404


class ConflictError(RedirectFixerError):
    """Crawl refused by the admission policy."""

    status_code = 409


class ExternalServiceError(RedirectFixerError):
    """A crawler backend or remote API is unreachable or returned an error."""

    status_code = 500


class ConfigurationError(ExternalServiceError):
    """A backend is missing required settings."""


class DispatchError(ExternalServiceError):
    """The external crawl could not be triggered."""


class ParseError(RedirectFixerError):
    """Crawl export data could not be interpreted."""

    status_code = 500
