"""
Connectors perform a single raw HTTP exchange.

The executor only depends on the ``send`` method described by the Connector
protocol, so any object providing it can be injected: the pooled requests
based connector below, the offline stub, or a caller's own caching client.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Mapping, Optional, Protocol

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .cancellation import CancellationToken
from .errors import TransportError
from .models import ResponseEnvelope

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
# How often an in-flight exchange checks its cancellation token
CANCEL_POLL_INTERVAL = 0.05


class Connector(Protocol):
    """Anything able to perform one HTTP exchange."""

    def send(self, verb: str, url: str, headers: Mapping[str, str],
             body: Optional[bytes] = None, timeout: Optional[float] = None,
             cancellation: Optional[CancellationToken] = None) -> ResponseEnvelope:
        """
        Perform a single exchange.

        Raises:
            TransportError: On any I/O failure
            Cancelled: If the token is cancelled while the exchange is in flight
        """
        ...


class RequestsConnector:
    """
    Connector backed by a pooled ``requests.Session``.

    The session is safe to share between threads; each call only borrows a
    pooled connection. Automatic retries of the adapter are disabled because
    retry policy belongs to the executor.

    With a cancellation token the exchange runs on a worker thread so the
    caller returns as soon as the token is cancelled.
    """

    def __init__(self, session: Optional[requests.Session] = None,
                 pool_size: int = 10, timeout: float = DEFAULT_TIMEOUT):
        """
        Initialize connector.

        Args:
            session: Optional preconfigured session
            pool_size: Maximum number of pooled connections per host
            timeout: Default timeout in seconds for connect and read
        """
        self.timeout = timeout
        self.pool_size = pool_size
        self.session = session or requests.Session()
        # Workers for exchanges that can be cancelled while in flight
        self._pool: Optional[ThreadPoolExecutor] = None
        self._pool_lock = threading.Lock()
        if session is None:
            adapter = HTTPAdapter(
                pool_connections=pool_size,
                pool_maxsize=pool_size,
                max_retries=Retry(total=0, read=False, redirect=5, raise_on_status=False),
            )
            self.session.mount('https://', adapter)
            self.session.mount('http://', adapter)
        logger.debug(f"Requests connector initialized (pool_size={pool_size}, timeout={timeout}s)")

    def send(self, verb: str, url: str, headers: Mapping[str, str],
             body: Optional[bytes] = None, timeout: Optional[float] = None,
             cancellation: Optional[CancellationToken] = None) -> ResponseEnvelope:
        effective_timeout = self.timeout if timeout is None else min(timeout, self.timeout)
        kwargs = {'headers': dict(headers), 'data': body, 'timeout': effective_timeout}
        try:
            if cancellation is None:
                response = self.session.request(verb, url, **kwargs)
            else:
                future = self._workers().submit(self.session.request, verb, url, **kwargs)
                response = self._await(future, url, cancellation)
        except requests.exceptions.Timeout as e:
            raise TransportError(f"Request to {url} timed out after {effective_timeout:.1f} seconds") from e
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Connection error for {url}: {e}") from e

        return ResponseEnvelope(
            status_code=response.status_code,
            headers=response.headers,
            body=response.content,
            url=response.url or url,
        )

    def _workers(self) -> ThreadPoolExecutor:
        with self._pool_lock:
            if self._pool is None:
                self._pool = ThreadPoolExecutor(max_workers=self.pool_size,
                                                thread_name_prefix="github-connector")
            return self._pool

    @staticmethod
    def _await(future: Future, url: str, cancellation: CancellationToken) -> requests.Response:
        """
        Wait for an exchange running on a worker thread.

        Raises:
            Cancelled: As soon as the token is cancelled; the late response is
                closed when it arrives
        """
        while True:
            try:
                return future.result(timeout=CANCEL_POLL_INTERVAL)
            except FutureTimeoutError:
                if future.done():
                    raise
                if cancellation.cancelled:
                    if not future.cancel():
                        future.add_done_callback(_close_response)
                    logger.debug(f"Abandoned in-flight request to {url}")
                    cancellation.raise_if_cancelled()

    def close(self) -> None:
        with self._pool_lock:
            pool, self._pool = self._pool, None
        if pool is not None:
            pool.shutdown(wait=False)
        self.session.close()


def _close_response(future: Future) -> None:
    if future.cancelled() or future.exception() is not None:
        return
    future.result().close()


class OfflineConnector:
    """Connector that is always off-line."""

    def send(self, verb: str, url: str, headers: Mapping[str, str],
             body: Optional[bytes] = None, timeout: Optional[float] = None,
             cancellation: Optional[CancellationToken] = None) -> ResponseEnvelope:
        raise TransportError(f"Offline: {verb} {url} was not sent")

    def close(self) -> None:
        pass
