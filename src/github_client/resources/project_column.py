"""Project board columns and cards."""

from typing import Any, Dict, Optional

from ..api.errors import NotFoundError
from ..api.paged import PagedIterable
from .base import GHObject

# Projects API preview
INERTIA = "inertia"


class GHProjectCard(GHObject):
    """A card of a project column."""

    def __init__(self, data: Dict[str, Any]):
        super().__init__(data)
        self.column: Optional["GHProjectColumn"] = None

    def attach(self, root, parent: Optional[GHObject] = None):
        super().attach(root, parent)
        if isinstance(parent, GHProjectColumn):
            self.column = parent
        return self

    @property
    def note(self) -> Optional[str]:
        return self._data.get("note")

    @property
    def archived(self) -> bool:
        return bool(self._data.get("archived", False))

    @property
    def content_url(self) -> Optional[str]:
        return self._data.get("content_url")


class GHProjectColumn(GHObject):
    """A column of a project board."""

    @property
    def name(self) -> str:
        return self._data.get("name", "")

    @property
    def project_url(self) -> Optional[str]:
        return self._data.get("project_url")

    @property
    def api_route(self) -> str:
        return f"/projects/columns/{self.id}"

    def get_project(self) -> Optional[Dict[str, Any]]:
        """The project owning this column, None if it is gone."""
        if not self.project_url:
            return None
        try:
            return self.root.new_request().with_preview(INERTIA).with_url_path(self.project_url).fetch()
        except NotFoundError:
            return None

    def set_name(self, name: str) -> None:
        self._edit("name", name)
        self._data["name"] = name

    def _edit(self, key: str, value: Any) -> None:
        self.root.new_request().with_preview(INERTIA).method("PATCH") \
            .with_field(key, value).with_url_path(self.api_route).send()

    def delete(self) -> None:
        self.root.new_request().with_preview(INERTIA).method("DELETE").with_url_path(self.api_route).send()

    def list_cards(self) -> PagedIterable:
        root = self.root
        return root.new_request().with_preview(INERTIA) \
            .with_url_path(self.api_route, "cards") \
            .list(GHProjectCard, wrap=lambda card: card.attach(root, parent=self))

    def create_card(self, note: str) -> GHProjectCard:
        card = self.root.new_request().method("POST").with_preview(INERTIA) \
            .with_field("note", note) \
            .with_url_path(self.api_route, "cards") \
            .fetch(GHProjectCard)
        return card.attach(self.root, parent=self)

    def create_issue_card(self, content_id: int, pull_request: bool = False) -> GHProjectCard:
        """Create a card referring to an issue or pull request."""
        card = self.root.new_request().method("POST").with_preview(INERTIA) \
            .with_field("content_type", "PullRequest" if pull_request else "Issue") \
            .with_field("content_id", content_id) \
            .with_url_path(self.api_route, "cards") \
            .fetch(GHProjectCard)
        return card.attach(self.root, parent=self)

    def __repr__(self):
        return f"GHProjectColumn(id={self.id!r}, name={self.name!r})"
