"""Memoized lazy initialization used by populate-on-demand resources."""

import threading
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar('T')


class Lazy(Generic[T]):
    """
    Value filled at most once by a fetch function.

    The state is either unpopulated or populated. Concurrent callers of
    ``get`` block on a lock while the first one fetches, so a burst of
    accessors issues a single request. A failing fetch propagates its error
    and leaves the value unpopulated, so the next access tries again.
    """

    def __init__(self, fill: Callable[[], T]):
        self._fill = fill
        self._lock = threading.Lock()
        self._value: Optional[T] = None
        self._populated = False

    @property
    def populated(self) -> bool:
        return self._populated

    def get(self) -> T:
        if self._populated:
            return self._value
        with self._lock:
            if not self._populated:
                self._value = self._fill()
                self._populated = True
        return self._value

    def set(self, value: T) -> None:
        """Mark as populated with a value obtained elsewhere."""
        with self._lock:
            self._value = value
            self._populated = True

    def reset(self) -> None:
        with self._lock:
            self._value = None
            self._populated = False
