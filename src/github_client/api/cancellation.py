"""
Caller-controlled cancellation for logical calls.

A CancellationToken can be cancelled from any thread and may carry a
deadline. The executor waits on the token instead of calling time.sleep, so a
cancel wakes a sleeping rate-limit or retry wait immediately.
"""

import logging
import threading
import time
from typing import Optional

from .errors import Cancelled

logger = logging.getLogger(__name__)


class CancellationToken:
    """
    Thread-safe cancellation flag with an optional deadline.

    Attributes:
        deadline: Monotonic time after which the token counts as cancelled
    """

    def __init__(self, timeout: Optional[float] = None):
        """
        Initialize token.

        Args:
            timeout: Seconds from now after which the call is aborted
        """
        self._event = threading.Event()
        self.deadline = time.monotonic() + timeout if timeout is not None else None
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled by caller") -> None:
        """Cancel the call; waiting threads wake up immediately."""
        self.reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None without one."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise Cancelled(self.reason or "cancelled by caller")
        if self.deadline is not None and time.monotonic() >= self.deadline:
            raise Cancelled("deadline exceeded")

    def wait(self, seconds: float) -> None:
        """
        Block for up to ``seconds``, returning early on cancellation.

        Raises:
            Cancelled: If the token is cancelled before or during the wait
        """
        self.raise_if_cancelled()
        limit = self.remaining()
        if limit is not None and limit < seconds:
            self._event.wait(limit)
            self.raise_if_cancelled()
            # deadline hit exactly while the event stayed clear
            raise Cancelled("deadline exceeded")
        if self._event.wait(max(0.0, seconds)):
            self.raise_if_cancelled()


def interruptible_sleep(seconds: float, token: Optional[CancellationToken] = None) -> None:
    """Default sleeper of the executor."""
    if seconds <= 0:
        if token is not None:
            token.raise_if_cancelled()
        return
    if token is None:
        time.sleep(seconds)
        return
    token.wait(seconds)
