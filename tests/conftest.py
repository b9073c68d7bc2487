"""Test configuration and fixtures."""

import json
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import pytest

from github_client.api.models import ResponseEnvelope
from github_client.api.rate_limit import RateLimitTracker
from github_client.api.rate_limit_handler import WaitRateLimitHandler
from github_client.api.requester import RequestExecutor
from github_client.api.retry import RetryHandler

API = "https://api.github.com"
NOW = 1_700_000_000


@pytest.fixture(autouse=True)
def setup_test_env():
    """Set up test environment variables."""
    # Save original environment
    original_env = dict(os.environ)

    for key in list(os.environ):
        if key.startswith('GITHUB_'):
            del os.environ[key]

    # Set test environment variables
    os.environ.update({
        'GITHUB_TOKEN': 'test_token',
        'GITHUB_API_URL': API,
        'GITHUB_RETRY_COUNT': '3',
        'GITHUB_RETRY_DELAY': '1.0',
    })

    yield

    # Restore original environment
    os.environ.clear()
    os.environ.update(original_env)


def make_response(status: int = 200, body: Any = None, headers: Optional[Dict[str, str]] = None,
                  rate: Optional[tuple] = None, url: str = "") -> ResponseEnvelope:
    """
    Build a response envelope.

    Args:
        status: HTTP status code
        body: JSON serializable body, or raw bytes
        headers: Extra response headers
        rate: (limit, remaining, reset) for the X-RateLimit-* headers
        url: URL the response claims to come from
    """
    all_headers = dict(headers or {})
    if rate is not None:
        limit, remaining, reset = rate
        all_headers.update({
            'X-RateLimit-Limit': str(limit),
            'X-RateLimit-Remaining': str(remaining),
            'X-RateLimit-Reset': str(reset),
        })
    if isinstance(body, bytes):
        raw = body
    elif body is None:
        raw = b""
    else:
        raw = json.dumps(body).encode("utf-8")
    return ResponseEnvelope(status_code=status, headers=all_headers, body=raw, url=url)


@dataclass
class SentRequest:
    verb: str
    url: str
    headers: Dict[str, str]
    body: Optional[bytes]
    timeout: Optional[float]


class FakeConnector:
    """Connector replaying scripted responses or exceptions in order."""

    def __init__(self, *responses):
        self.responses: List[Any] = list(responses)
        self.calls: List[SentRequest] = []

    def queue(self, *responses) -> None:
        self.responses.extend(responses)

    def send(self, verb, url, headers, body=None, timeout=None, cancellation=None):
        self.calls.append(SentRequest(verb, url, dict(headers), body, timeout))
        if not self.responses:
            raise AssertionError(f"Unexpected request: {verb} {url}")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        if callable(item):
            return item(verb, url, headers, body)
        return item

    def close(self):
        pass


class FakeClock:
    """Clock whose sleeps advance time instantly."""

    def __init__(self, now: float = NOW):
        self.now = float(now)
        self.sleeps: List[float] = []

    def time(self) -> float:
        return self.now

    def sleep(self, seconds: float, token=None) -> None:
        if token is not None:
            token.raise_if_cancelled()
        self.sleeps.append(seconds)
        self.now += max(0.0, seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def connector():
    return FakeConnector()


@pytest.fixture
def tracker():
    return RateLimitTracker()


@pytest.fixture
def make_executor(connector, tracker, clock):
    """Factory for executors wired to the fake connector and clock."""
    def factory(**kwargs):
        options = {
            'api_url': API,
            'connector': connector,
            'tracker': tracker,
            'rate_limit_handler': WaitRateLimitHandler(buffer=0),
            'retry_handler': RetryHandler(max_attempts=3, backoff_factor=1.0),
            'credentials': 'test_token',
            'clock': clock.time,
            'sleeper': clock.sleep,
        }
        options.update(kwargs)
        return RequestExecutor(**options)
    return factory


@pytest.fixture
def executor(make_executor):
    return make_executor()
