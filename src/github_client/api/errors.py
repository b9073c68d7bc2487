"""
Error classes for GitHub API access.

This module defines the typed failures the request pipeline surfaces to
callers. Every failure derives from GitHubAPIError so callers can catch the
whole family at once, while the subclasses tell retryable transport and
server conditions apart from caller mistakes and schema drift.
"""

import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)


class GitHubAPIError(Exception):
    """Base class for all GitHub API errors."""

    def __init__(self, message: str, status_code: Optional[int] = None,
                 response_data: Optional[Any] = None):
        """
        Initialize GitHub API error.

        Args:
            message: Error message
            status_code: HTTP status code, if a response was received
            response_data: Parsed error body for debugging
        """
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response_data = response_data


class RetryableError(GitHubAPIError):
    """Failure that may succeed when the same request is sent again."""


class TransportError(RetryableError):
    """I/O failure while talking to the server (connect, read, timeout)."""


class ServerError(RetryableError):
    """5xx response."""


class AbuseRateLimited(RetryableError):
    """Secondary (abuse) rate limit rejection."""

    def __init__(self, message: str, retry_after: Optional[float] = None,
                 status_code: int = 403, response_data: Optional[Any] = None):
        """
        Initialize secondary rate limit error.

        Args:
            message: Error message
            retry_after: Server suggested delay in seconds, if any
            status_code: HTTP status code (403 or 429)
            response_data: Parsed error body
        """
        super().__init__(message, status_code, response_data)
        self.retry_after = retry_after


class RateLimitExceeded(GitHubAPIError):
    """Primary rate limit quota is exhausted."""

    def __init__(self, message: str, record=None, status_code: Optional[int] = None,
                 response_data: Optional[Any] = None):
        """
        Initialize rate limit error.

        Args:
            message: Error message
            record: RateLimitRecord observed when the quota ran out
            status_code: HTTP status code, None when raised before sending
            response_data: Parsed error body
        """
        super().__init__(message, status_code, response_data)
        self.record = record

    @property
    def reset_time(self) -> Optional[int]:
        """Epoch seconds at which the quota resets."""
        return self.record.reset if self.record is not None else None


class ClientError(GitHubAPIError):
    """4xx response that is not a rate limit rejection."""


class AuthenticationError(ClientError):
    """Authentication with the GitHub API failed."""


class NotFoundError(ClientError):
    """Resource was not found."""


class DecodeError(GitHubAPIError):
    """Response body is malformed or does not match the expected shape."""


class Cancelled(GitHubAPIError):
    """Call was cancelled by the caller or hit its deadline."""


class RetryExhausted(GitHubAPIError):
    """A retryable failure persisted through every allowed attempt."""

    def __init__(self, last_error: GitHubAPIError, attempts: int, rate_limit_waits: int = 0):
        """
        Initialize retry exhaustion error.

        Args:
            last_error: The failure of the final attempt
            attempts: Number of physical attempts made
            rate_limit_waits: Number of times the call waited for a quota reset
        """
        waits = f" and {rate_limit_waits} rate limit waits" if rate_limit_waits else ""
        super().__init__(
            f"Giving up after {attempts} attempts{waits}: {last_error.message}",
            last_error.status_code,
            last_error.response_data,
        )
        self.last_error = last_error
        self.attempts = attempts
        self.rate_limit_waits = rate_limit_waits
