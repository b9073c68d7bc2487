"""GitHub API client configuration module."""

import logging
import os
from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

RATE_LIMIT_POLICIES = ("wait", "fail")


def _parse_statuses(value: str) -> FrozenSet[int]:
    return frozenset(int(part) for part in value.replace(" ", "").split(",") if part)


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class GitHubConfig:
    """
    GitHub API client configuration.

    Contains the settings of the request pipeline: endpoint and credentials,
    retry policy, rate limit policy and connection pooling.

    ``rate_limit_policy`` defaults to "wait": a call that runs out of quota
    blocks its thread until GitHub resets the quota, which can take up to an
    hour. Set it to "fail" to get RateLimitExceeded immediately instead.
    """

    access_token: Optional[str] = None
    api_url: str = "https://api.github.com"
    per_page: int = 100  # Page size hint for paginated collections
    retry_count: int = 3  # Number of retries after the first attempt
    retry_delay: float = 1.0  # Delay before the first retry in seconds, doubled per retry
    max_retry_delay: float = 60.0  # Upper bound of computed retry delays
    retry_statuses: FrozenSet[int] = field(default_factory=lambda: frozenset([500, 502, 503, 504]))
    rate_limit_policy: str = "wait"
    rate_limit_buffer: float = 1.0  # Extra seconds to wait past a quota reset
    timeout: float = 30.0  # Connect/read timeout of a single exchange
    pool_size: int = 10  # Pooled connections per host
    user_agent: str = "github-client"
    cache_enabled: bool = True  # Conditional (ETag) caching of GET responses
    cache_max_size: int = 1000

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.rate_limit_policy not in RATE_LIMIT_POLICIES:
            raise ValueError(f"rate_limit_policy must be one of {RATE_LIMIT_POLICIES}, "
                             f"got {self.rate_limit_policy!r}")
        if self.retry_count < 0:
            raise ValueError("retry_count can't be negative")
        if not 1 <= self.per_page <= 100:
            raise ValueError("per_page must be between 1 and 100")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        self.retry_statuses = frozenset(self.retry_statuses)
        if not self.access_token:
            logger.info("No GitHub token configured, using anonymous access")

    @property
    def max_attempts(self) -> int:
        """Total attempts per call, the first one included."""
        return self.retry_count + 1

    @classmethod
    def from_env(cls) -> 'GitHubConfig':
        """Create configuration from environment variables (and a .env file)."""
        load_dotenv()

        token = os.getenv('GITHUB_TOKEN')
        if not token:
            token = os.getenv('GITHUB_API_TOKEN')  # Fallback

        return cls(
            access_token=token or None,
            api_url=os.getenv('GITHUB_API_URL', 'https://api.github.com'),
            per_page=int(os.getenv('GITHUB_PER_PAGE', '100')),
            retry_count=int(os.getenv('GITHUB_RETRY_COUNT', '3')),
            retry_delay=float(os.getenv('GITHUB_RETRY_DELAY', '1.0')),
            max_retry_delay=float(os.getenv('GITHUB_MAX_RETRY_DELAY', '60.0')),
            retry_statuses=_parse_statuses(os.getenv('GITHUB_RETRY_STATUSES', '500,502,503,504')),
            rate_limit_policy=os.getenv('GITHUB_RATE_LIMIT_POLICY', 'wait').lower(),
            rate_limit_buffer=float(os.getenv('GITHUB_RATE_LIMIT_BUFFER', '1.0')),
            timeout=float(os.getenv('GITHUB_TIMEOUT', '30.0')),
            pool_size=int(os.getenv('GITHUB_POOL_SIZE', '10')),
            user_agent=os.getenv('GITHUB_USER_AGENT', 'github-client'),
            cache_enabled=_parse_bool(os.getenv('GITHUB_CACHE_ENABLED', 'true')),
            cache_max_size=int(os.getenv('GITHUB_CACHE_MAX_SIZE', '1000')),
        )
