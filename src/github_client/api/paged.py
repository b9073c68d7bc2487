"""
Lazy iteration over paginated GitHub collections.

GitHub paginates collections with a ``Link`` response header; the URL with
``rel="next"`` points at the following page and is absent on the last one.
PagedIterable fetches pages on demand through the executor, so each page gets
the same rate limit and retry handling as any other call.
"""

import logging
from typing import Any, Callable, Iterator, List, Mapping, Optional

from requests.utils import parse_header_links

from .errors import DecodeError

logger = logging.getLogger(__name__)

LINK_HEADER = "Link"


def next_page_url(headers: Mapping[str, str]) -> Optional[str]:
    """
    Extract the page cursor from a ``Link`` header.

    Args:
        headers: Response headers

    Returns:
        URL of the next page, or None on the last page
    """
    link = headers.get(LINK_HEADER)
    if not link:
        return None
    for entry in parse_header_links(link):
        if entry.get("rel") == "next" and entry.get("url"):
            return entry["url"]
    return None


class PagedIterable:
    """
    Lazy, finite sequence of the items of a paginated collection.

    Each iteration starts over from the first page and issues fresh requests,
    so two traversals may see different data if the server changed in
    between. Nothing is cached across iterations.
    """

    def __init__(self, executor, spec, shape=None, page_size: Optional[int] = None,
                 items_key: Optional[str] = None, wrap: Optional[Callable[[Any], Any]] = None,
                 cancellation=None):
        """
        Initialize paged sequence.

        Args:
            executor: RequestExecutor performing each page request
            spec: RequestSpec of the first page
            shape: Shape of a single item
            page_size: ``per_page`` hint; the server may return fewer items
            items_key: Key holding the items when a page is a JSON object
            wrap: Called with every decoded item to attach context
            cancellation: Optional CancellationToken shared by all page requests
        """
        self.executor = executor
        self.spec = spec
        self.shape = shape
        self.page_size = page_size
        self.items_key = items_key
        self.wrap = wrap
        self.cancellation = cancellation

    def with_page_size(self, page_size: int) -> "PagedIterable":
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self.page_size = page_size
        return self

    def __iter__(self) -> Iterator[Any]:
        for page in self.iter_pages():
            yield from page

    def iter_pages(self) -> Iterator[List[Any]]:
        """
        Yield one decoded page at a time.

        The next page is requested only when the consumer asks for it.
        """
        spec = self.spec
        if self.page_size:
            spec = spec.with_query_param("per_page", self.page_size)

        page_number = 0
        while spec is not None:
            result = self.executor.call(spec, None, self.cancellation)
            page_number += 1
            page = [self._convert(item) for item in self._items(result.value)]
            logger.debug(f"Fetched page {page_number} with {len(page)} items")
            yield page

            cursor = next_page_url(result.envelope.headers)
            spec = spec.with_url(cursor) if cursor else None

    def to_list(self) -> List[Any]:
        """Fetch every page up front and return all items in page order."""
        items = list(self)
        logger.debug(f"Collected {len(items)} items in total")
        return items

    def first(self) -> Optional[Any]:
        """First item of the collection, fetching only the first page."""
        return next(iter(self), None)

    def _items(self, value: Any) -> List[Any]:
        if value is None:
            return []
        if isinstance(value, list):
            return value
        if isinstance(value, dict):
            key = self.items_key or "items"
            items = value.get(key)
            if isinstance(items, list):
                return items
            raise DecodeError(f"Page object has no '{key}' list", response_data=value)
        raise DecodeError(f"Expected a JSON array page, got {type(value).__name__}", response_data=value)

    def _convert(self, item: Any) -> Any:
        value = self.executor.mapper.convert(item, self.shape)
        if self.wrap is not None:
            wrapped = self.wrap(value)
            if wrapped is not None:
                value = wrapped
        return value
