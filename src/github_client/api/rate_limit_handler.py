"""
Policies deciding what happens when the primary rate limit is exhausted.

A handler is any object with an ``on_quota_exhausted(category, record, now)``
method returning a RateLimitAction. The executor calls it when its pre-flight
check finds no quota left, or when the server rejects a request because the
quota ran out.

WaitRateLimitHandler is the default. It blocks the calling thread until the
quota resets, which for GitHub's hourly windows can take up to an hour.
Interactive callers usually want FailRateLimitHandler instead.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .errors import RateLimitExceeded
from .models import RateLimitRecord

logger = logging.getLogger(__name__)

WAIT = "wait"
FAIL = "fail"
CUSTOM = "custom"


@dataclass(frozen=True)
class RateLimitAction:
    """Decision of a rate limit handler."""

    kind: str
    until: Optional[float] = None  # WAIT: epoch seconds to sleep until
    delay: float = 0.0  # CUSTOM: seconds to sleep before sending anyway
    error: Optional[RateLimitExceeded] = None  # FAIL

    @classmethod
    def wait(cls, until: float) -> "RateLimitAction":
        return cls(WAIT, until=until)

    @classmethod
    def fail(cls, error: RateLimitExceeded) -> "RateLimitAction":
        return cls(FAIL, error=error)

    @classmethod
    def custom(cls, delay: float) -> "RateLimitAction":
        return cls(CUSTOM, delay=max(0.0, delay))


def exhausted_error(category: str, record: RateLimitRecord) -> RateLimitExceeded:
    reset_at = datetime.fromtimestamp(record.reset)
    return RateLimitExceeded(
        f"Rate limit '{category}' exceeded ({record.remaining}/{record.limit}). Reset at {reset_at}",
        record=record,
    )


class WaitRateLimitHandler:
    """Sleep until the quota resets, then proceed."""

    def __init__(self, buffer: float = 1.0):
        """
        Args:
            buffer: Extra seconds to wait past the reset time for clock skew
        """
        self.buffer = buffer

    def on_quota_exhausted(self, category: str, record: RateLimitRecord,
                           now: Optional[float] = None) -> RateLimitAction:
        now = time.time() if now is None else now
        until = record.reset + self.buffer
        logger.warning(f"Rate limit '{category}' exhausted. Waiting {max(0.0, until - now):.1f} seconds "
                       f"until reset at {datetime.fromtimestamp(record.reset)}.")
        return RateLimitAction.wait(until)


class FailRateLimitHandler:
    """Surface RateLimitExceeded immediately."""

    def on_quota_exhausted(self, category: str, record: RateLimitRecord,
                           now: Optional[float] = None) -> RateLimitAction:
        return RateLimitAction.fail(exhausted_error(category, record))


def handler_for_policy(policy: str, buffer: float = 1.0):
    """
    Build the handler named by a configuration value.

    Args:
        policy: "wait" or "fail"
        buffer: Extra wait in seconds for the wait policy

    Raises:
        ValueError: For an unknown policy name
    """
    if policy == WAIT:
        return WaitRateLimitHandler(buffer=buffer)
    if policy == FAIL:
        return FailRateLimitHandler()
    raise ValueError(f"Unknown rate limit policy: {policy!r}")
