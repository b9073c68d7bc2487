"""Value types shared by the request pipeline."""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from requests.structures import CaseInsensitiveDict

from .errors import GitHubAPIError

logger = logging.getLogger(__name__)

# Header names of the rate limit wire contract
LIMIT_HEADER = "X-RateLimit-Limit"
REMAINING_HEADER = "X-RateLimit-Remaining"
RESET_HEADER = "X-RateLimit-Reset"
RESOURCE_HEADER = "X-RateLimit-Resource"


@dataclass(frozen=True)
class RateLimitRecord:
    """
    Most recently observed quota of one rate limit category.

    Records are immutable and replaced whole by the tracker.
    """

    category: str
    limit: int
    remaining: int
    reset: int  # epoch seconds

    def __post_init__(self):
        if self.remaining < 0:
            object.__setattr__(self, "remaining", 0)

    def is_stale(self, now: Optional[float] = None) -> bool:
        """Whether the reset time has passed and the record can't be trusted."""
        now = time.time() if now is None else now
        return now >= self.reset

    def is_exhausted(self, now: Optional[float] = None) -> bool:
        return self.remaining == 0 and not self.is_stale(now)

    def seconds_until_reset(self, now: Optional[float] = None) -> float:
        now = time.time() if now is None else now
        return max(0.0, self.reset - now)

    @classmethod
    def from_headers(cls, headers: Mapping[str, str], category: str) -> Optional["RateLimitRecord"]:
        """
        Parse the ``X-RateLimit-*`` headers of a response.

        Args:
            headers: Response headers (case-insensitive mapping)
            category: Category derived from the request path. The record is
                always keyed by it, since that is what pre-flight checks look
                up; ``X-RateLimit-Resource`` can name a finer bucket such as
                ``code_search``.

        Returns:
            New record, or None if the headers are absent or malformed
        """
        raw_limit = headers.get(LIMIT_HEADER)
        raw_remaining = headers.get(REMAINING_HEADER)
        raw_reset = headers.get(RESET_HEADER)
        if raw_limit is None or raw_remaining is None or raw_reset is None:
            return None
        resource = headers.get(RESOURCE_HEADER)
        if resource and resource != category:
            logger.debug(f"Rate limit resource '{resource}' recorded under category '{category}'")
        try:
            return cls(
                category=category,
                limit=int(raw_limit),
                remaining=int(raw_remaining),
                reset=int(float(raw_reset)),
            )
        except ValueError:
            return None

    @classmethod
    def from_api(cls, category: str, data: Mapping[str, Any]) -> "RateLimitRecord":
        """Build a record from one entry of the ``/rate_limit`` resources."""
        return cls(
            category=category,
            limit=int(data.get("limit", 0)),
            remaining=int(data.get("remaining", 0)),
            reset=int(data.get("reset", 0)),
        )


@dataclass
class ResponseEnvelope:
    """Status, headers and body of a single HTTP exchange."""

    status_code: int
    headers: CaseInsensitiveDict
    body: bytes = b""
    url: str = ""

    def __post_init__(self):
        if not isinstance(self.headers, CaseInsensitiveDict):
            self.headers = CaseInsensitiveDict(self.headers or {})

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def not_modified(self) -> bool:
        return self.status_code == 304


@dataclass
class RetryState:
    """Bookkeeping for one logical call across its physical attempts."""

    attempt_count: int = 0
    last_error: Optional[GitHubAPIError] = None
    next_backoff: float = 0.0
    rate_limit_waits: int = field(default=0)
