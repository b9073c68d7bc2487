"""GitHub pull request resource and its review builder."""

import logging
from typing import Any, Dict, List, Optional

from ..api.paged import PagedIterable
from .base import GHObject, PopulatingObject, parse_timestamp
from .user import GHUser

logger = logging.getLogger(__name__)

MERGE_METHODS = ("merge", "squash", "rebase")
REVIEW_EVENTS = ("APPROVE", "REQUEST_CHANGES", "COMMENT")


class GHCommitPointer(GHObject):
    """Head or base of a pull request."""

    def __init__(self, data: Dict[str, Any]):
        super().__init__(data)
        user = data.get("user")
        self.user = GHUser(user) if user else None

    def _attach_children(self, root) -> None:
        if self.user is not None:
            self.user.attach(root)

    @property
    def ref(self) -> str:
        return self._data.get("ref", "")

    @property
    def sha(self) -> str:
        return self._data.get("sha", "")

    @property
    def label(self) -> str:
        return self._data.get("label", "")

    @property
    def repository_full_name(self) -> Optional[str]:
        repo = self._data.get("repo") or {}
        return repo.get("full_name")


class GHPullRequest(PopulatingObject):
    """
    A pull request.

    Listing pull requests returns a reduced representation; merge related
    fields trigger a single fetch of the full object on first access.
    """

    detail_field = "mergeable_state"

    def _build_children(self) -> None:
        head = self._data.get("head")
        base = self._data.get("base")
        user = self._data.get("user")
        self.head = GHCommitPointer(head) if head else None
        self.base = GHCommitPointer(base) if base else None
        self.user = GHUser(user) if user else None

    def _attach_children(self, root) -> None:
        for child in (self.head, self.base, self.user):
            if child is not None:
                child.attach(root, parent=self)

    @property
    def number(self) -> int:
        return self._data.get("number", 0)

    @property
    def title(self) -> str:
        return self._data.get("title", "")

    @property
    def body(self) -> Optional[str]:
        return self._data.get("body")

    @property
    def state(self) -> str:
        return self._data.get("state", "")

    @property
    def repository_full_name(self) -> str:
        if self.base is not None and self.base.repository_full_name:
            return self.base.repository_full_name
        # https://api.github.com/repos/{owner}/{repo}/pulls/{number}
        parts = (self.url or "").split("/repos/", 1)[-1].split("/")
        return "/".join(parts[:2])

    @property
    def api_route(self) -> str:
        return f"/repos/{self.repository_full_name}/pulls/{self.number}"

    @property
    def merged_at(self):
        return parse_timestamp(self._data.get("merged_at"))

    @property
    def mergeable(self) -> Optional[bool]:
        return self._detail("mergeable")

    @property
    def mergeable_state(self) -> Optional[str]:
        return self._detail("mergeable_state")

    @property
    def merged(self) -> bool:
        return bool(self._detail("merged", False))

    @property
    def merged_by(self) -> Optional[GHUser]:
        data = self._detail("merged_by")
        if not data:
            return None
        user = GHUser(data)
        if self.is_attached:
            user.attach(self.root, parent=self)
        return user

    @property
    def merge_commit_sha(self) -> Optional[str]:
        return self._detail("merge_commit_sha")

    @property
    def additions(self) -> int:
        return self._detail("additions", 0)

    @property
    def deletions(self) -> int:
        return self._detail("deletions", 0)

    @property
    def changed_files(self) -> int:
        return self._detail("changed_files", 0)

    @property
    def commit_count(self) -> int:
        return self._detail("commits", 0)

    def list_files(self) -> PagedIterable:
        """Files changed by this pull request as raw JSON objects."""
        return self.root.new_request().with_url_path(self.api_route, "files").list()

    def list_commits(self) -> PagedIterable:
        return self.root.new_request().with_url_path(self.api_route, "commits").list()

    def list_reviews(self) -> PagedIterable:
        return self.root.new_request().with_url_path(self.api_route, "reviews").list()

    def list_review_comments(self) -> PagedIterable:
        return self.root.new_request().with_url_path(self.api_route, "comments").list()

    def create_review(self) -> "GHPullRequestReviewBuilder":
        return GHPullRequestReviewBuilder(self)

    def merge(self, message: Optional[str] = None, sha: Optional[str] = None,
              merge_method: str = "merge") -> Dict[str, Any]:
        """
        Merge this pull request.

        Args:
            message: Commit message of the merge commit
            sha: Head SHA that must match for the merge to happen
            merge_method: "merge", "squash" or "rebase"
        """
        if merge_method not in MERGE_METHODS:
            raise ValueError(f"merge_method must be one of {MERGE_METHODS}")
        request = self.root.new_request().method("PUT") \
            .with_url_path(self.api_route, "merge") \
            .with_field("merge_method", merge_method)
        if message is not None:
            request.with_field("commit_message", message)
        if sha is not None:
            request.with_field("sha", sha)
        result = request.fetch()
        logger.info(f"Merged pull request {self.repository_full_name}#{self.number}")
        self._details.reset()
        return result

    def __repr__(self):
        return f"GHPullRequest(number={self.number!r}, title={self.title!r})"


class GHPullRequestReviewBuilder:
    """Accumulates a pull request review before submitting it."""

    def __init__(self, pull_request: GHPullRequest):
        self.pull_request = pull_request
        self._fields: Dict[str, Any] = {}
        self._comments: List[Dict[str, Any]] = []

    def commit_id(self, sha: str) -> "GHPullRequestReviewBuilder":
        self._fields["commit_id"] = sha
        return self

    def body(self, text: str) -> "GHPullRequestReviewBuilder":
        self._fields["body"] = text
        return self

    def event(self, event: str) -> "GHPullRequestReviewBuilder":
        if event not in REVIEW_EVENTS:
            raise ValueError(f"event must be one of {REVIEW_EVENTS}")
        self._fields["event"] = event
        return self

    def comment(self, body: str, path: str, position: int) -> "GHPullRequestReviewBuilder":
        """
        Add a draft review comment.

        Args:
            body: Text of the comment
            path: Relative path of the file to comment on
            position: Line of the diff the comment applies to
        """
        self._comments.append({"body": body, "path": path, "position": position})
        return self

    def create(self) -> Dict[str, Any]:
        request = self.pull_request.root.new_request().method("POST") \
            .with_url_path(self.pull_request.api_route, "reviews")
        for key, value in self._fields.items():
            request.with_field(key, value)
        request.with_field("comments", self._comments)
        return request.fetch()
