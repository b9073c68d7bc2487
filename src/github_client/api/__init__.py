"""
Request pipeline of the GitHub client.

This package implements everything between a resource method and the wire:

1. Requester/RequestExecutor building and executing calls
2. Rate limit tracking and the pluggable rate limit and retry policies
3. Lazy pagination over Link headers
4. Connectors performing the raw HTTP exchanges
"""

from .cache import ConditionalCache, Validator
from .cancellation import CancellationToken
from .connector import Connector, OfflineConnector, RequestsConnector
from .errors import (
    AbuseRateLimited,
    AuthenticationError,
    Cancelled,
    ClientError,
    DecodeError,
    GitHubAPIError,
    NotFoundError,
    RateLimitExceeded,
    RetryableError,
    RetryExhausted,
    ServerError,
    TransportError,
)
from .lazy import Lazy
from .mapper import JsonMapper
from .models import RateLimitRecord, ResponseEnvelope, RetryState
from .paged import PagedIterable, next_page_url
from .rate_limit import RateLimitTracker, category_for_path
from .rate_limit_handler import (
    FailRateLimitHandler,
    RateLimitAction,
    WaitRateLimitHandler,
    handler_for_policy,
)
from .requester import CallState, RequestExecutor, Requester, RequestSpec
from .retry import RetryDecision, RetryHandler, classify_response

__all__ = [
    'AbuseRateLimited',
    'AuthenticationError',
    'CallState',
    'CancellationToken',
    'Cancelled',
    'ClientError',
    'ConditionalCache',
    'Connector',
    'DecodeError',
    'FailRateLimitHandler',
    'GitHubAPIError',
    'JsonMapper',
    'Lazy',
    'NotFoundError',
    'OfflineConnector',
    'PagedIterable',
    'RateLimitAction',
    'RateLimitExceeded',
    'RateLimitRecord',
    'RateLimitTracker',
    'RequestExecutor',
    'RequestSpec',
    'Requester',
    'RequestsConnector',
    'ResponseEnvelope',
    'RetryDecision',
    'RetryExhausted',
    'RetryHandler',
    'RetryState',
    'RetryableError',
    'ServerError',
    'TransportError',
    'Validator',
    'WaitRateLimitHandler',
    'category_for_path',
    'classify_response',
    'handler_for_policy',
    'next_page_url',
]
