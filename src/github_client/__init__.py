"""
Typed client for the GitHub REST API.

The request pipeline shared by every resource lives in ``github_client.api``;
``GitHub`` is the root object wiring it together.
"""

from .api import (
    AbuseRateLimited,
    AuthenticationError,
    CancellationToken,
    Cancelled,
    ClientError,
    DecodeError,
    FailRateLimitHandler,
    GitHubAPIError,
    NotFoundError,
    PagedIterable,
    RateLimitExceeded,
    RateLimitRecord,
    RateLimitTracker,
    RequestExecutor,
    Requester,
    RequestSpec,
    RetryExhausted,
    RetryHandler,
    ServerError,
    TransportError,
    WaitRateLimitHandler,
)
from .client import GitHub
from .config import GitHubConfig

__version__ = "0.1.0"

__all__ = [
    'AbuseRateLimited',
    'AuthenticationError',
    'CancellationToken',
    'Cancelled',
    'ClientError',
    'DecodeError',
    'FailRateLimitHandler',
    'GitHub',
    'GitHubAPIError',
    'GitHubConfig',
    'NotFoundError',
    'PagedIterable',
    'RateLimitExceeded',
    'RateLimitRecord',
    'RateLimitTracker',
    'RequestExecutor',
    'RequestSpec',
    'Requester',
    'RetryExhausted',
    'RetryHandler',
    'ServerError',
    'TransportError',
    'WaitRateLimitHandler',
]
