"""
Validator cache for conditional requests.

This module keeps the ETag/Last-Modified validators and the decoded value of
recent GET responses, keyed by URL. The executor sends the validators as
If-None-Match/If-Modified-Since and reuses the value on 304 Not Modified,
which GitHub does not count against the rate limit.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Validator:
    """Precondition of a conditional request plus the value it guards."""

    etag: Optional[str] = None
    last_modified: Optional[str] = None
    value: Any = None

    def headers(self) -> Dict[str, str]:
        headers = {}
        if self.etag:
            headers["If-None-Match"] = self.etag
        if self.last_modified:
            headers["If-Modified-Since"] = self.last_modified
        return headers

    def __bool__(self) -> bool:
        return bool(self.etag or self.last_modified)


class ConditionalCache:
    """
    In-memory LRU cache of validators with size limitation.

    Removes the least recently used entries when the maximum size is
    reached. All operations are guarded by a lock because one cache is shared
    by every thread using the client.
    """

    def __init__(self, name: str = "conditional", max_size: int = 1000, max_age: int = 86400):
        """
        Initialize cache.

        Args:
            name: Name of the cache (for logging)
            max_size: Maximum number of entries to store
            max_age: Maximum age of cache entries in seconds
        """
        self.name = name
        self.max_size = max_size
        self.max_age = max_age
        self._lock = threading.Lock()
        self.cache: Dict[str, Dict[str, Any]] = {}
        self.access_times: Dict[str, float] = {}
        logger.info(f"Conditional cache '{name}' initialized (max_size={max_size}, max_age={max_age}s)")

    def get(self, key: str) -> Optional[Validator]:
        """
        Get validator from cache.

        Args:
            key: Cache key (request URL)

        Returns:
            Stored validator or None if not found or expired
        """
        with self._lock:
            entry = self.cache.get(key)
            if entry is None:
                logger.debug(f"Cache miss for '{key}' in '{self.name}'")
                return None

            current_time = time.time()
            if current_time - entry['timestamp'] > self.max_age:
                logger.debug(f"Cache entry '{key}' in '{self.name}' has expired")
                self._remove(key)
                return None

            self.access_times[key] = current_time
            logger.debug(f"Cache hit for '{key}' in '{self.name}'")
            return entry['validator']

    def set(self, key: str, validator: Validator) -> None:
        """
        Store validator in cache. Validators without etag or last-modified are ignored.

        Args:
            key: Cache key (request URL)
            validator: Validator to store
        """
        if not validator:
            return
        current_time = time.time()
        with self._lock:
            if len(self.cache) >= self.max_size and key not in self.cache:
                self._remove_oldest_entry()
            self.cache[key] = {
                'validator': validator,
                'timestamp': current_time
            }
            self.access_times[key] = current_time
        logger.debug(f"Validator for '{key}' cached in '{self.name}'")

    def remove(self, key: str) -> None:
        with self._lock:
            self._remove(key)

    def clear(self) -> None:
        """Clear the entire cache."""
        with self._lock:
            self.cache.clear()
            self.access_times.clear()
        logger.info(f"Cache '{self.name}' cleared")

    def __len__(self) -> int:
        with self._lock:
            return len(self.cache)

    def _remove(self, key: str) -> None:
        self.cache.pop(key, None)
        self.access_times.pop(key, None)

    def _remove_oldest_entry(self) -> None:
        """Remove the least recently used entry."""
        if not self.access_times:
            return
        oldest_key = min(self.access_times.items(), key=lambda x: x[1])[0]
        self._remove(oldest_key)
        logger.debug(f"Oldest entry '{oldest_key}' removed from '{self.name}'")
