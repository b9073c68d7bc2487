"""
Request building and execution for the GitHub API.

This module is the pipeline every resource call goes through:

- Requester accumulates verb, path, parameters, headers and body and freezes
  them into an immutable RequestSpec
- RequestExecutor turns a RequestSpec into one or more connector exchanges,
  consulting the rate limit tracker before sending, handing exhausted quotas
  to the rate limit handler, retrying transient failures through the retry
  handler and decoding the final body with the JSON mapper
- execute_paged wraps the same machinery in a lazy PagedIterable

A logical call moves through the states of CallState; transitions are logged
at DEBUG level.
"""

import enum
import logging
import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import requests

from .cache import ConditionalCache, Validator
from .cancellation import CancellationToken, interruptible_sleep
from .connector import Connector, RequestsConnector
from .errors import (
    Cancelled,
    GitHubAPIError,
    RateLimitExceeded,
    RetryExhausted,
    TransportError,
)
from .mapper import JsonMapper, Shape
from .models import RateLimitRecord, ResponseEnvelope, RetryState
from .paged import PagedIterable
from .rate_limit import RateLimitTracker, category_for_path
from .rate_limit_handler import CUSTOM, FAIL, WaitRateLimitHandler, exhausted_error
from .retry import RetryHandler, classify_response

logger = logging.getLogger(__name__)

# Constants for the API endpoint
GITHUB_API_BASE = "https://api.github.com"
DEFAULT_ACCEPT = "application/vnd.github.v3+json"
DEFAULT_USER_AGENT = "github-client"

SAFE_VERBS = frozenset(["GET", "HEAD", "OPTIONS"])


class CallState(enum.Enum):
    BUILDING = "building"
    SENDING = "sending"
    RATE_LIMIT_WAIT = "rate_limit_wait"
    RETRY_WAIT = "retry_wait"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


def preview_media_type(name: str) -> str:
    """Accept media type enabling a GitHub API preview."""
    return f"application/vnd.github.{name}-preview+json"


@dataclass(frozen=True)
class RequestSpec:
    """
    Immutable description of one logical API call.

    Attributes:
        verb: HTTP method
        path: API path relative to the API root, or an absolute URL
        query_params: Ordered query parameters
        body: Structured body, JSON encoded when sent
        raw_body: Body bytes sent as is
        headers: Extra headers, overriding the executor's defaults
        idempotent: Whether failed attempts may be retried automatically
        validator: Precondition of a conditional request
        use_cache: Whether the executor's conditional cache may be used
    """

    verb: str = "GET"
    path: str = "/"
    query_params: Tuple[Tuple[str, str], ...] = ()
    body: Any = None
    raw_body: Optional[bytes] = None
    headers: Tuple[Tuple[str, str], ...] = ()
    idempotent: bool = True
    validator: Optional[Validator] = None
    use_cache: bool = True

    def __post_init__(self):
        if self.body is not None and self.raw_body is not None:
            raise ValueError("A request can carry a structured body or raw bytes, not both")
        object.__setattr__(self, "verb", self.verb.upper())

    def with_url(self, url: str) -> "RequestSpec":
        """Same call against another URL that already carries its query string."""
        return replace(self, path=url, query_params=(), validator=None)

    def with_query_param(self, key: str, value: Any) -> "RequestSpec":
        params = tuple((k, v) for k, v in self.query_params if k != key)
        return replace(self, query_params=params + ((key, _format_param(value)),))

    def header(self, name: str) -> Optional[str]:
        lowered = name.lower()
        for key, value in self.headers:
            if key.lower() == lowered:
                return value
        return None


def _format_param(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, enum.Enum):
        return str(value.value)
    if isinstance(value, (list, tuple)):
        return ",".join(_format_param(v) for v in value)
    return str(value)


class Requester:
    """
    Builder of RequestSpec objects.

    The builder is mutable and not thread-safe; the specs it builds are
    immutable and may be shared freely.
    """

    def __init__(self, executor: Optional["RequestExecutor"] = None):
        self.executor = executor
        self._verb = "GET"
        self._path = "/"
        self._params: List[Tuple[str, str]] = []
        self._fields: Dict[str, Any] = {}
        self._body: Any = None
        self._raw_body: Optional[bytes] = None
        self._headers: Dict[str, str] = {}
        self._previews: List[str] = []
        self._retry_safe: Optional[bool] = None
        self._validator: Optional[Validator] = None
        self._use_cache = True

    def method(self, verb: str) -> "Requester":
        self._verb = verb.upper()
        return self

    def with_url_path(self, *parts: Any) -> "Requester":
        """Set the target path; several parts are joined with slashes."""
        path = "/".join(str(p).strip("/") for p in parts if str(p).strip("/"))
        first = str(parts[0]) if parts else ""
        if "://" in first:
            self._path = path
        else:
            self._path = "/" + path
        return self

    def with_param(self, key: str, value: Any) -> "Requester":
        """Add a query parameter; None values are skipped."""
        if value is not None:
            self._params.append((key, _format_param(value)))
        return self

    def with_field(self, key: str, value: Any) -> "Requester":
        """Add a field to the JSON object body."""
        self._fields[key] = value
        return self

    def with_body(self, value: Any) -> "Requester":
        self._body = value
        return self

    def with_raw_body(self, data: bytes, content_type: str = "application/octet-stream") -> "Requester":
        self._raw_body = data
        self._headers["Content-Type"] = content_type
        return self

    def with_header(self, name: str, value: str) -> "Requester":
        self._headers[name] = value
        return self

    def with_preview(self, name: str) -> "Requester":
        """Request a preview media type of the API."""
        if name not in self._previews:
            self._previews.append(name)
        return self

    def with_validator(self, etag: Optional[str] = None, last_modified: Optional[str] = None,
                       value: Any = None) -> "Requester":
        """
        Make the call conditional on a previously observed response.

        Args:
            etag: ETag of the previous response
            last_modified: Last-Modified of the previous response
            value: Value returned when the server answers 304 Not Modified
        """
        if not etag and not last_modified:
            raise ValueError("A validator needs an etag or a last-modified value")
        self._validator = Validator(etag=etag, last_modified=last_modified, value=value)
        return self

    def retry_safe(self, safe: bool = True) -> "Requester":
        """Mark the call as safe (or unsafe) to retry automatically."""
        self._retry_safe = safe
        return self

    def no_cache(self) -> "Requester":
        self._use_cache = False
        return self

    def build(self) -> RequestSpec:
        """
        Freeze the accumulated settings.

        Raises:
            ValueError: If both a structured and a raw body were given, or
                body fields were mixed with a whole body
        """
        body = self._body
        if self._fields:
            if body is not None or self._raw_body is not None:
                raise ValueError("Body fields can't be combined with a whole request body")
            body = dict(self._fields)

        headers = dict(self._headers)
        if self._previews:
            headers["Accept"] = ", ".join(preview_media_type(p) for p in self._previews)

        idempotent = self._retry_safe
        if idempotent is None:
            idempotent = self._verb in SAFE_VERBS

        return RequestSpec(
            verb=self._verb,
            path=self._path,
            query_params=tuple(self._params),
            body=body,
            raw_body=self._raw_body,
            headers=tuple(headers.items()),
            idempotent=idempotent,
            validator=self._validator,
            use_cache=self._use_cache,
        )

    def _require_executor(self) -> "RequestExecutor":
        if self.executor is None:
            raise RuntimeError("Requester is not bound to an executor")
        return self.executor

    def fetch(self, shape: Shape = None, cancellation: Optional[CancellationToken] = None) -> Any:
        """Build and execute, decoding the response into ``shape``."""
        return self._require_executor().execute(self.build(), shape, cancellation)

    def send(self, cancellation: Optional[CancellationToken] = None) -> None:
        """Build and execute a call whose response body is not needed."""
        self._require_executor().execute(self.build(), None, cancellation)

    def list(self, shape: Shape = None, page_size: Optional[int] = None,
             items_key: Optional[str] = None, wrap: Optional[Callable[[Any], Any]] = None,
             cancellation: Optional[CancellationToken] = None) -> PagedIterable:
        """Build and return a lazy paged sequence of ``shape`` items."""
        return self._require_executor().execute_paged(
            self.build(), shape, page_size=page_size, items_key=items_key,
            wrap=wrap, cancellation=cancellation,
        )


@dataclass
class CallResult:
    """Decoded value of a logical call and the exchange that produced it."""

    value: Any
    envelope: ResponseEnvelope
    not_modified: bool = False


class RequestExecutor:
    """
    Executes RequestSpecs against the GitHub API.

    All collaborators are injected; the tracker is the only mutable state
    shared between concurrent calls, so one executor can serve many threads.
    """

    def __init__(self,
                 api_url: str = GITHUB_API_BASE,
                 connector: Optional[Connector] = None,
                 tracker: Optional[RateLimitTracker] = None,
                 rate_limit_handler=None,
                 retry_handler: Optional[RetryHandler] = None,
                 mapper: Optional[JsonMapper] = None,
                 cache: Optional[ConditionalCache] = None,
                 credentials: Union[str, Callable[[], Optional[str]], None] = None,
                 user_agent: str = DEFAULT_USER_AGENT,
                 clock: Callable[[], float] = time.time,
                 sleeper: Callable[[float, Optional[CancellationToken]], None] = interruptible_sleep):
        """
        Initialize executor.

        Args:
            api_url: API root URL
            connector: Transport performing single exchanges
            tracker: Shared rate limit tracker
            rate_limit_handler: Policy for exhausted quotas (waits by default)
            retry_handler: Policy for transient failures
            mapper: JSON mapper for bodies
            cache: Optional conditional request cache
            credentials: Token string, or callable returning the Authorization header value
            user_agent: User-Agent header value
            clock: Source of epoch seconds
            sleeper: Called with (seconds, cancellation token) to wait
        """
        self.api_url = api_url.rstrip("/")
        self.connector = connector or RequestsConnector()
        self.tracker = tracker or RateLimitTracker()
        self.rate_limit_handler = rate_limit_handler or WaitRateLimitHandler()
        self.retry_handler = retry_handler or RetryHandler()
        self.mapper = mapper or JsonMapper()
        self.cache = cache
        self.credentials = credentials
        self.user_agent = user_agent
        self.clock = clock
        self.sleeper = sleeper

    # -- public surface ------------------------------------------------------

    def new_request(self) -> Requester:
        return Requester(self)

    def execute(self, spec: RequestSpec, shape: Shape = None,
                cancellation: Optional[CancellationToken] = None) -> Any:
        """
        Execute a logical call and decode its result.

        Args:
            spec: The call to make
            shape: Target shape of the decoded body
            cancellation: Optional token aborting waits and transport

        Returns:
            Decoded value (None for empty bodies)

        Raises:
            GitHubAPIError: Typed failure of the call
        """
        return self.call(spec, shape, cancellation).value

    def execute_paged(self, spec: RequestSpec, shape: Shape = None, page_size: Optional[int] = None,
                      items_key: Optional[str] = None, wrap: Optional[Callable[[Any], Any]] = None,
                      cancellation: Optional[CancellationToken] = None) -> PagedIterable:
        """Lazy sequence of the items of every page of a collection."""
        return PagedIterable(self, spec, shape, page_size=page_size, items_key=items_key,
                             wrap=wrap, cancellation=cancellation)

    def url_for(self, spec: RequestSpec) -> str:
        """Absolute URL of a spec, query parameters included."""
        if "://" in spec.path:
            url = spec.path
        else:
            url = f"{self.api_url}/{spec.path.lstrip('/')}"
        if not spec.query_params:
            return url
        return requests.Request(spec.verb, url, params=list(spec.query_params)).prepare().url

    # -- state machine -------------------------------------------------------

    def call(self, spec: RequestSpec, shape: Shape = None,
             cancellation: Optional[CancellationToken] = None) -> CallResult:
        """
        Run the state machine of one logical call.

        Returns:
            CallResult with the decoded value and the final exchange
        """
        url = self.url_for(spec)
        category = category_for_path(url)
        headers = self._headers_for(spec)
        body = self._body_for(spec)

        cache_key = None
        validator = spec.validator
        if self.cache is not None and spec.use_cache and spec.verb == "GET":
            cache_key = self._cache_key(url, shape)
            if validator is None:
                validator = self.cache.get(cache_key)
        if validator:
            headers.update(validator.headers())

        state = RetryState()
        skip_preflight = False
        self._transition(CallState.SENDING, spec, url)

        while True:
            self._check_cancelled(cancellation, spec, url)

            if not skip_preflight:
                record = self.tracker.current_quota(category)
                if record is not None and record.is_exhausted(self.clock()):
                    state.rate_limit_waits += 1
                    skip_preflight = self._rate_limit_wait(category, record, spec, url, cancellation)
                    continue
            skip_preflight = False

            state.attempt_count += 1
            try:
                envelope = self.connector.send(spec.verb, url, headers, body,
                                               timeout=self._timeout(cancellation), cancellation=cancellation)
            except Cancelled:
                logger.info(f"{spec.verb} {url} cancelled while in flight")
                self._transition(CallState.FAILED, spec, url)
                raise
            except TransportError as e:
                self._check_cancelled(cancellation, spec, url)
                logger.debug(f"Transport failure on {spec.verb} {url}: {e}")
                error: GitHubAPIError = e
            else:
                self._check_cancelled(cancellation, spec, url)
                self.tracker.observe(envelope.headers, url)

                if envelope.not_modified and validator:
                    logger.debug(f"{spec.verb} {url} not modified, reusing previous value")
                    self._transition(CallState.SUCCEEDED, spec, url)
                    return CallResult(validator.value, envelope, not_modified=True)

                if envelope.ok:
                    value = self._decode(envelope, shape, spec, url)
                    if cache_key is not None:
                        self.cache.set(cache_key, Validator(
                            etag=envelope.headers.get("ETag"),
                            last_modified=envelope.headers.get("Last-Modified"),
                            value=value,
                        ))
                    self._transition(CallState.SUCCEEDED, spec, url)
                    return CallResult(value, envelope)

                error = self._error_for(envelope)

            state.last_error = error

            if isinstance(error, RateLimitExceeded):
                record = RateLimitRecord.from_headers(envelope.headers, category)
                error.record = record
                if record is None or state.attempt_count >= self.retry_handler.max_attempts:
                    self._transition(CallState.FAILED, spec, url)
                    raise error
                state.rate_limit_waits += 1
                skip_preflight = self._rate_limit_wait(category, record, spec, url, cancellation, cause=error)
                continue

            decision = self.retry_handler.should_retry(state.attempt_count, error, spec.idempotent)
            if not decision.retry:
                self._transition(CallState.FAILED, spec, url)
                if self.retry_handler.exhausted(state.attempt_count, error, spec.idempotent):
                    logger.warning(f"{spec.verb} {url} failed after {state.attempt_count} attempts "
                                   f"({state.rate_limit_waits} rate limit waits): {error}")
                    raise RetryExhausted(error, state.attempt_count, state.rate_limit_waits) from error
                raise error

            state.next_backoff = decision.delay
            logger.warning(f"{error.message}. Retrying {spec.verb} {url} in {state.next_backoff:.1f}s "
                           f"(attempt {state.attempt_count}/{self.retry_handler.max_attempts})")
            self._transition(CallState.RETRY_WAIT, spec, url)
            self._sleep(state.next_backoff, cancellation, spec, url)
            self._transition(CallState.SENDING, spec, url)

    # -- helpers -------------------------------------------------------------

    def _rate_limit_wait(self, category: str, record: RateLimitRecord, spec: RequestSpec, url: str,
                         cancellation: Optional[CancellationToken],
                         cause: Optional[RateLimitExceeded] = None) -> bool:
        """
        Apply the rate limit handler's decision.

        Returns:
            True when the next send must skip the pre-flight check
        """
        action = self.rate_limit_handler.on_quota_exhausted(category, record, self.clock())
        if action.kind == FAIL:
            self._transition(CallState.FAILED, spec, url)
            error = action.error or exhausted_error(category, record)
            if cause is not None:
                raise error from cause
            raise error

        self._transition(CallState.RATE_LIMIT_WAIT, spec, url)
        if action.kind == CUSTOM:
            delay = action.delay
        else:
            delay = max(0.0, (action.until if action.until is not None else record.reset) - self.clock())
        self._sleep(delay, cancellation, spec, url)
        self._transition(CallState.SENDING, spec, url)
        return True

    def _sleep(self, seconds: float, cancellation: Optional[CancellationToken],
               spec: RequestSpec, url: str) -> None:
        try:
            self.sleeper(seconds, cancellation)
        except GitHubAPIError:
            self._transition(CallState.FAILED, spec, url)
            raise

    def _check_cancelled(self, cancellation: Optional[CancellationToken], spec: RequestSpec, url: str) -> None:
        if cancellation is None:
            return
        try:
            cancellation.raise_if_cancelled()
        except GitHubAPIError:
            self._transition(CallState.FAILED, spec, url)
            raise

    @staticmethod
    def _timeout(cancellation: Optional[CancellationToken]) -> Optional[float]:
        if cancellation is None:
            return None
        return cancellation.remaining()

    def _decode(self, envelope: ResponseEnvelope, shape: Shape, spec: RequestSpec, url: str) -> Any:
        try:
            return self.mapper.decode(envelope.body, shape)
        except GitHubAPIError as e:
            e.status_code = envelope.status_code
            self._transition(CallState.FAILED, spec, url)
            raise

    def _error_for(self, envelope: ResponseEnvelope) -> GitHubAPIError:
        try:
            data = self.mapper.parse(envelope.body)
        except GitHubAPIError:
            data = None
        return classify_response(envelope, data)

    def _headers_for(self, spec: RequestSpec) -> Dict[str, str]:
        headers = {
            "Accept": DEFAULT_ACCEPT,
            "User-Agent": self.user_agent,
        }
        authorization = self._authorization()
        if authorization:
            headers["Authorization"] = authorization
        if spec.body is not None:
            headers["Content-Type"] = "application/json"
        headers.update(dict(spec.headers))
        return headers

    def _authorization(self) -> Optional[str]:
        if self.credentials is None:
            return None
        if callable(self.credentials):
            return self.credentials()
        return f"token {self.credentials}"

    def _body_for(self, spec: RequestSpec) -> Optional[bytes]:
        if spec.raw_body is not None:
            return spec.raw_body
        if spec.body is not None:
            return self.mapper.encode(spec.body)
        return None

    @staticmethod
    def _cache_key(url: str, shape: Shape) -> str:
        name = getattr(shape, "__qualname__", None) or repr(shape)
        return f"{url}#{name}"

    @staticmethod
    def _transition(state: CallState, spec: RequestSpec, url: str) -> None:
        logger.debug(f"{spec.verb} {url} -> {state.name}")
