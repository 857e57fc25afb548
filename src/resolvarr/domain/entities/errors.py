"""Resolution error taxonomy.

Every error carries a stable ``code`` that is stored on failed jobs and
returned verbatim to pollers.
"""

from __future__ import annotations


class ResolutionError(Exception):
    """Base class for all source-resolution errors."""

    code = "resolution_error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.code)
        self.message = message or self.code


class NotFoundError(ResolutionError):
    """No candidate in either backend."""

    code = "not_found"


class ValidationFailureError(ResolutionError):
    """Candidates were found but every one failed the quality gate."""

    code = "validation_failure"


class QuotaExceededError(ResolutionError):
    """Cloud backend rejected the request for quota/rate reasons."""

    code = "quota_exceeded"


class AuthFailureError(ResolutionError):
    """Cloud backend rejected our credentials."""

    code = "auth_failure"


class TransientNetworkError(ResolutionError):
    """Retryable network failure talking to a backend."""

    code = "transient_network"


class JobNotFoundError(ResolutionError):
    """Job is absent or was reaped; the caller restarts resolution."""

    code = "job_not_found"


class CacheUnavailableError(ResolutionError):
    """Resolution cache could not be read or written. Never surfaced."""

    code = "cache_unavailable"


class JobCancelledError(ResolutionError):
    """Raised inside a job worker at a checkpoint after cancellation."""

    code = "cancelled"
