"""
Base classes of the resource wrappers.

Resources are decoded into plain objects first (``from_api``) and receive
their context in a separate ``attach`` step. The back-reference to the client
is a weak reference: it is used only to build further requests and never
keeps the client alive.
"""

import logging
import weakref
from datetime import datetime
from typing import Any, Dict, Optional

from ..api.lazy import Lazy

logger = logging.getLogger(__name__)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO 8601 timestamp as returned by the API."""
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class GHObject:
    """Resource backed by the JSON object the API returned."""

    def __init__(self, data: Dict[str, Any]):
        self._data = dict(data)
        self._root_ref = None

    @classmethod
    def from_api(cls, data: Any):
        """Decode a JSON object; used as the mapper shape of the resource."""
        if not isinstance(data, dict):
            raise TypeError(f"{cls.__name__} expects a JSON object, got {type(data).__name__}")
        return cls(data)

    def attach(self, root, parent: Optional["GHObject"] = None):
        """
        Assign the client (and owning resource) used for further requests.

        Returns:
            self, for chaining after a fetch
        """
        self._root_ref = weakref.ref(root)
        self._attach_children(root)
        return self

    def _attach_children(self, root) -> None:
        """Attach nested resources; overridden by resources that have any."""

    @property
    def root(self):
        client = self._root_ref() if self._root_ref is not None else None
        if client is None:
            raise RuntimeError(f"{type(self).__name__} is not attached to a client")
        return client

    @property
    def is_attached(self) -> bool:
        return self._root_ref is not None and self._root_ref() is not None

    @property
    def id(self) -> Optional[int]:
        return self._data.get("id")

    @property
    def url(self) -> Optional[str]:
        return self._data.get("url")

    @property
    def html_url(self) -> Optional[str]:
        return self._data.get("html_url")

    @property
    def created_at(self) -> Optional[datetime]:
        return parse_timestamp(self._data.get("created_at"))

    @property
    def updated_at(self) -> Optional[datetime]:
        return parse_timestamp(self._data.get("updated_at"))

    def to_api(self) -> Dict[str, Any]:
        return dict(self._data)

    def __eq__(self, other):
        if type(self) is not type(other):
            return NotImplemented
        return self._data == other._data

    def __hash__(self):
        return hash((type(self).__name__, self.id))

    def __repr__(self):
        return f"{type(self).__name__}(id={self.id!r})"


class PopulatingObject(GHObject):
    """
    Resource whose list representation lacks some fields.

    Fields that are only present in the full representation are filled on
    first access by fetching ``api_route``. The fill runs at most once even
    when several threads access such fields concurrently.
    """

    # A field that is only present in the full representation
    detail_field: Optional[str] = None

    def __init__(self, data: Dict[str, Any]):
        super().__init__(data)
        self._build_children()
        self._details = Lazy(self._fetch_details)
        if self.detail_field is not None and data.get(self.detail_field) is not None:
            self._details.set(self._data)

    def _build_children(self) -> None:
        """Wrap nested JSON objects of ``_data``; overridden by resources that have any."""

    @property
    def api_route(self) -> str:
        return self.url

    def _fetch_details(self) -> Dict[str, Any]:
        root = self.root
        logger.debug(f"Populating {self!r} from {self.api_route}")
        data = root.new_request().with_url_path(self.api_route).fetch()
        self._data.update(data)
        # Nested resources were built from the list representation
        self._build_children()
        self._attach_children(root)
        return self._data

    def populate(self) -> None:
        """Fetch the full representation unless already done."""
        self._details.get()

    def _detail(self, key: str, default: Any = None) -> Any:
        self.populate()
        return self._data.get(key, default)
