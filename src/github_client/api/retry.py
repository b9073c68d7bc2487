"""
Classification of failed exchanges and the retry policy.

GitHub signals three different throttles and failures that look alike on the
wire: the primary quota (403/429 with ``X-RateLimit-Remaining: 0``), the
secondary "abuse" limit (403/429 with ``Retry-After`` or an explanatory
message) and plain server errors. classify_response turns a non-2xx response
into the matching typed error; RetryHandler decides whether to try again.
"""

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from urllib3.exceptions import InvalidHeader
from urllib3.util.retry import Retry

from .errors import (
    AbuseRateLimited,
    AuthenticationError,
    ClientError,
    GitHubAPIError,
    NotFoundError,
    RateLimitExceeded,
    RetryableError,
    ServerError,
    TransportError,
)
from .models import REMAINING_HEADER, ResponseEnvelope

logger = logging.getLogger(__name__)

DEFAULT_RETRY_STATUSES = frozenset([500, 502, 503, 504])
RETRY_AFTER_HEADER = "Retry-After"

_SECONDARY_MARKERS = ("secondary rate limit", "abuse detection", "abuse rate limit")

# Used only for its Retry-After parser
_retry_after_parser = Retry(total=0)


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Parse a ``Retry-After`` value given in seconds or as an HTTP date."""
    if not value:
        return None
    try:
        return max(0.0, float(_retry_after_parser.parse_retry_after(value.strip())))
    except InvalidHeader:
        logger.debug(f"Ignoring malformed Retry-After header: {value!r}")
        return None


def _error_message(data: Any, envelope: ResponseEnvelope) -> str:
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    text = envelope.body[:500].decode("utf-8", errors="replace").strip()
    return text or f"HTTP {envelope.status_code}"


def classify_response(envelope: ResponseEnvelope, data: Any = None) -> GitHubAPIError:
    """
    Build the typed error for a non-2xx response.

    Args:
        envelope: The failed exchange
        data: Parsed JSON error body, if the body was JSON

    Returns:
        Error instance matching the status and headers
    """
    status = envelope.status_code
    headers = envelope.headers
    message = _error_message(data, envelope)
    detail = f"{status}: {message}"

    if status in (403, 429):
        retry_after = parse_retry_after(headers.get(RETRY_AFTER_HEADER))
        lowered = message.lower()
        if retry_after is not None or any(marker in lowered for marker in _SECONDARY_MARKERS):
            return AbuseRateLimited(f"Secondary rate limit: {detail}", retry_after=retry_after,
                                    status_code=status, response_data=data)
        if headers.get(REMAINING_HEADER) == "0":
            return RateLimitExceeded(f"Rate limit exceeded: {detail}", status_code=status, response_data=data)
        if status == 429:
            return AbuseRateLimited(f"Too many requests: {detail}", status_code=status, response_data=data)
    if status == 401:
        return AuthenticationError(f"Authentication failed: {detail}", status, data)
    if status == 404:
        return NotFoundError(f"Resource not found: {envelope.url}", status, data)
    if 400 <= status < 500:
        return ClientError(f"API error: {detail}", status, data)
    if status >= 500:
        return ServerError(f"Server error: {detail}", status, data)
    return GitHubAPIError(f"Unexpected response: {detail}", status, data)


@dataclass(frozen=True)
class RetryDecision:
    retry: bool
    delay: float = 0.0


NO_RETRY = RetryDecision(False)


class RetryHandler:
    """
    Bounded exponential backoff for transient failures.

    A server supplied Retry-After delay takes precedence over the computed
    backoff. Only idempotent calls are retried.
    """

    def __init__(self, max_attempts: int = 4, backoff_factor: float = 1.0,
                 max_backoff: float = 60.0, retry_statuses: Iterable[int] = DEFAULT_RETRY_STATUSES):
        """
        Initialize retry handler.

        Args:
            max_attempts: Total physical attempts per logical call, first one included
            backoff_factor: Delay of the first retry; doubled for every further retry
            max_backoff: Upper bound for computed delays
            retry_statuses: 5xx status codes worth retrying
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.backoff_factor = backoff_factor
        self.max_backoff = max_backoff
        self.retry_statuses = frozenset(retry_statuses)

    def is_retryable(self, error: GitHubAPIError) -> bool:
        if isinstance(error, (TransportError, AbuseRateLimited)):
            return True
        if isinstance(error, ServerError):
            return error.status_code in self.retry_statuses
        return False

    def backoff(self, attempt_count: int) -> float:
        return min(self.max_backoff, self.backoff_factor * (2 ** max(0, attempt_count - 1)))

    def should_retry(self, attempt_count: int, error: GitHubAPIError,
                     idempotent: bool = True) -> RetryDecision:
        """
        Decide whether to send the request again.

        Args:
            attempt_count: Physical attempts made so far, including the failed one
            error: Failure of the last attempt
            idempotent: Whether the call is safe to repeat

        Returns:
            RetryDecision with the delay to wait before the next attempt
        """
        if not idempotent or not self.is_retryable(error):
            return NO_RETRY
        if attempt_count >= self.max_attempts:
            return NO_RETRY
        if isinstance(error, AbuseRateLimited) and error.retry_after is not None:
            return RetryDecision(True, error.retry_after)
        return RetryDecision(True, self.backoff(attempt_count))

    def exhausted(self, attempt_count: int, error: GitHubAPIError, idempotent: bool = True) -> bool:
        """Whether a NO_RETRY decision was caused by the attempt bound."""
        return idempotent and isinstance(error, RetryableError) and self.is_retryable(error) \
            and attempt_count >= self.max_attempts
