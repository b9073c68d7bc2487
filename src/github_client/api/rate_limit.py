"""
Process-wide tracking of GitHub rate limit quotas.

This module implements a thread-safe tracker that keeps the most recently
observed quota per rate limit category. Every response updates it and the
executor consults it before sending, so a client that knows it has no quota
left does not burn a request to find out.
"""

import logging
import threading
import time
from typing import Dict, Mapping, Optional

from .models import RateLimitRecord

logger = logging.getLogger(__name__)

CORE = "core"
SEARCH = "search"
GRAPHQL = "graphql"
INTEGRATION_MANIFEST = "integration_manifest"


def category_for_path(path: str) -> str:
    """
    Infer the quota category a request path counts against.

    Args:
        path: API path or absolute URL

    Returns:
        Category name
    """
    if "://" in path:
        path = "/" + path.split("://", 1)[1].partition("/")[2]
    path = path.split("?", 1)[0]
    # GitHub Enterprise serves the API under /api/v3
    if path.startswith("/api/v3/"):
        path = path[len("/api/v3"):]
    if path.startswith("/search/") or path == "/search":
        return SEARCH
    if path.startswith("/graphql") or path.startswith("/api/graphql"):
        return GRAPHQL
    if path.startswith("/app-manifests/") and path.endswith("/conversions"):
        return INTEGRATION_MANIFEST
    return CORE


class RateLimitTracker:
    """
    Latest rate limit record per category.

    Records are immutable and replaced whole under a lock, so concurrent
    readers never see a record mixing two responses. An unknown category
    (no record yet) never blocks a request.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._records: Dict[str, RateLimitRecord] = {}

    def observe(self, headers: Mapping[str, str], path: str = "/") -> Optional[RateLimitRecord]:
        """
        Update the tracker from response headers.

        Args:
            headers: Response headers
            path: Request path, used when the response doesn't name its category

        Returns:
            The stored record, or None if the response carried no quota headers
        """
        record = RateLimitRecord.from_headers(headers, category_for_path(path))
        if record is None:
            return None
        self.update(record)
        return record

    def update(self, record: RateLimitRecord) -> None:
        with self._lock:
            previous = self._records.get(record.category)
            self._records[record.category] = record

        # Only log if the value changed significantly
        if previous is None or abs(previous.remaining - record.remaining) > 10 or record.remaining <= 100:
            logger.info(f"Rate limit '{record.category}': {record.remaining}/{record.limit} remaining, "
                        f"reset at {time.ctime(record.reset)}")
        else:
            logger.debug(f"Rate limit '{record.category}': {record.remaining} remaining")

    def current_quota(self, category: str) -> Optional[RateLimitRecord]:
        """Return the latest record of ``category``, None if unknown."""
        with self._lock:
            return self._records.get(category)

    def snapshot(self) -> Dict[str, RateLimitRecord]:
        """Copy of all known records."""
        with self._lock:
            return dict(self._records)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()
