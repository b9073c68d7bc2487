"""GitHub user resource."""

from typing import Optional

from ..api.paged import PagedIterable
from .base import PopulatingObject


class GHUser(PopulatingObject):
    """
    A GitHub user.

    Users embedded in other resources carry only login, id and URLs; profile
    fields like ``name`` or ``followers_count`` are fetched on first access.
    """

    detail_field = "public_repos"

    @property
    def login(self) -> str:
        return self._data.get("login", "")

    @property
    def type(self) -> str:
        return self._data.get("type", "User")

    @property
    def avatar_url(self) -> Optional[str]:
        return self._data.get("avatar_url")

    @property
    def api_route(self) -> str:
        return f"/users/{self.login}"

    @property
    def name(self) -> Optional[str]:
        return self._detail("name")

    @property
    def company(self) -> Optional[str]:
        return self._detail("company")

    @property
    def location(self) -> Optional[str]:
        return self._detail("location")

    @property
    def blog(self) -> Optional[str]:
        return self._detail("blog")

    @property
    def followers_count(self) -> int:
        return self._detail("followers", 0)

    @property
    def following_count(self) -> int:
        return self._detail("following", 0)

    @property
    def public_repo_count(self) -> int:
        return self._detail("public_repos", 0)

    def list_followers(self) -> PagedIterable:
        """Users following this user."""
        return self._list_users("followers")

    def list_follows(self) -> PagedIterable:
        """Users this user is following."""
        return self._list_users("following")

    def _list_users(self, suffix: str) -> PagedIterable:
        root = self.root
        return root.new_request().with_url_path(self.api_route, suffix).list(
            GHUser, wrap=lambda user: user.attach(root),
        )

    def list_repositories(self, repo_type: str = "owner") -> PagedIterable:
        """Public repositories of this user as raw JSON objects."""
        return self.root.new_request() \
            .with_url_path(self.api_route, "repos") \
            .with_param("type", repo_type) \
            .list()

    def __repr__(self):
        return f"GHUser(login={self.login!r})"
