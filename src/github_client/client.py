"""
GitHub API client.

The GitHub class is the root object resources are attached to. It wires the
request pipeline together from a GitHubConfig:

- a pooled requests connector
- the process-wide rate limit tracker
- the rate limit policy (wait or fail) and the retry policy
- the conditional request cache
"""

import logging
from typing import Any, Dict, Optional

from .api.cache import ConditionalCache
from .api.cancellation import CancellationToken
from .api.connector import Connector, RequestsConnector
from .api.mapper import Shape
from .api.models import RateLimitRecord
from .api.paged import PagedIterable
from .api.rate_limit import RateLimitTracker
from .api.rate_limit_handler import handler_for_policy
from .api.requester import RequestExecutor, Requester, RequestSpec
from .api.retry import RetryHandler
from .config import GitHubConfig
from .resources import GHLicense, GHProjectColumn, GHPullRequest, GHUser

logger = logging.getLogger(__name__)

RATE_LIMIT_ENDPOINT = "/rate_limit"


class GitHub:
    """
    Entry point to the GitHub API.

    One instance may be shared by many threads. Collaborators not passed in
    are created from the configuration.
    """

    def __init__(self, config: Optional[GitHubConfig] = None,
                 connector: Optional[Connector] = None,
                 rate_limit_handler=None,
                 retry_handler: Optional[RetryHandler] = None,
                 tracker: Optional[RateLimitTracker] = None,
                 cache: Optional[ConditionalCache] = None,
                 **executor_options):
        """
        Initialize GitHub client.

        Args:
            config: Client configuration; read from the environment if omitted
            connector: Transport; a pooled requests connector by default
            rate_limit_handler: Policy for exhausted quotas; from config by default
            retry_handler: Policy for transient failures; from config by default
            tracker: Rate limit tracker to share with other clients
            cache: Conditional request cache; from config by default
            executor_options: Extra RequestExecutor arguments (clock, sleeper, mapper)
        """
        self.config = config or GitHubConfig.from_env()
        self.connector = connector or RequestsConnector(
            pool_size=self.config.pool_size, timeout=self.config.timeout,
        )
        if cache is None and self.config.cache_enabled:
            cache = ConditionalCache(name="github", max_size=self.config.cache_max_size)

        self.executor = RequestExecutor(
            api_url=self.config.api_url,
            connector=self.connector,
            tracker=tracker or RateLimitTracker(),
            rate_limit_handler=rate_limit_handler or handler_for_policy(
                self.config.rate_limit_policy, buffer=self.config.rate_limit_buffer,
            ),
            retry_handler=retry_handler or RetryHandler(
                max_attempts=self.config.max_attempts,
                backoff_factor=self.config.retry_delay,
                max_backoff=self.config.max_retry_delay,
                retry_statuses=self.config.retry_statuses,
            ),
            cache=cache,
            credentials=self.config.access_token,
            user_agent=self.config.user_agent,
            **executor_options,
        )

        logger.info(f"GitHub client initialized for {self.config.api_url} "
                    f"({'authenticated' if self.config.access_token else 'anonymous'}, "
                    f"rate limit policy '{self.config.rate_limit_policy}')")

    # -- context manager -----------------------------------------------------

    def __enter__(self) -> "GitHub":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def close(self) -> None:
        close = getattr(self.connector, "close", None)
        if close is not None:
            close()

    # -- request pipeline ----------------------------------------------------

    @property
    def tracker(self) -> RateLimitTracker:
        return self.executor.tracker

    def new_request(self) -> Requester:
        return Requester(self.executor)

    def execute(self, spec: RequestSpec, shape: Shape = None,
                cancellation: Optional[CancellationToken] = None) -> Any:
        return self.executor.execute(spec, shape, cancellation)

    def execute_paged(self, spec: RequestSpec, shape: Shape = None, page_size: Optional[int] = None,
                      cancellation: Optional[CancellationToken] = None, **options) -> PagedIterable:
        return self.executor.execute_paged(
            spec, shape, page_size=page_size or self.config.per_page, cancellation=cancellation, **options,
        )

    # -- rate limits ---------------------------------------------------------

    def get_rate_limit(self) -> Dict[str, RateLimitRecord]:
        """
        Fetch the current quota of every category.

        The ``/rate_limit`` endpoint doesn't count against the quota. Every
        returned category is recorded in the tracker.

        Returns:
            Dictionary mapping category names to records
        """
        data = self.new_request().with_url_path(RATE_LIMIT_ENDPOINT).no_cache().fetch() or {}
        records = {
            category: RateLimitRecord.from_api(category, values)
            for category, values in data.get("resources", {}).items()
        }
        for record in records.values():
            self.tracker.update(record)
        return records

    def current_quota(self, category: str = "core") -> Optional[RateLimitRecord]:
        """Last observed quota of ``category`` without a request."""
        return self.tracker.current_quota(category)

    # -- resources -----------------------------------------------------------

    def get_myself(self) -> GHUser:
        return self.new_request().with_url_path("/user").fetch(GHUser).attach(self)

    def get_user(self, login: str) -> GHUser:
        return self.new_request().with_url_path("/users", login).fetch(GHUser).attach(self)

    def get_pull_request(self, owner: str, repo: str, number: int) -> GHPullRequest:
        return self.new_request() \
            .with_url_path("/repos", owner, repo, "pulls", number) \
            .fetch(GHPullRequest).attach(self)

    def list_pull_requests(self, owner: str, repo: str, state: str = "open") -> PagedIterable:
        return self.new_request() \
            .with_url_path("/repos", owner, repo, "pulls") \
            .with_param("state", state) \
            .list(GHPullRequest, page_size=self.config.per_page, wrap=lambda pr: pr.attach(self))

    def get_project_column(self, column_id: int) -> GHProjectColumn:
        return self.new_request().with_preview("inertia") \
            .with_url_path("/projects/columns", column_id) \
            .fetch(GHProjectColumn).attach(self)

    def get_license(self, key: str) -> GHLicense:
        return self.new_request().with_url_path("/licenses", key).fetch(GHLicense).attach(self)

    def list_licenses(self) -> PagedIterable:
        return self.new_request().with_url_path("/licenses") \
            .list(GHLicense, wrap=lambda item: item.attach(self))

    def search_repositories(self, query: str, sort: Optional[str] = None,
                            order: Optional[str] = None) -> PagedIterable:
        """Search repositories; results are raw JSON objects, counted against the search quota."""
        return self.new_request().with_url_path("/search/repositories") \
            .with_param("q", query) \
            .with_param("sort", sort) \
            .with_param("order", order) \
            .list(page_size=self.config.per_page, items_key="items")
