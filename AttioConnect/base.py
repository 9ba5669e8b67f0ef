import http.client
import logging
import select
import ssl
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Union
from urllib.parse import ParseResult, urlparse

from .config import Configuration
from .error_factory import ErrorFactory, is_transient
from .middlewares import BaseMiddleware, LoggingMiddleware
from .models import HTTPRequest, HTTPResponse
from .utils import CaseInsensitiveDict

logger = logging.getLogger(__name__)

KEEPALIVE_TIMEOUT = 30.0
POOL_SIZE = 5
RETRY_DELAY = 0.5
MAX_RETRY_DELAY = 10.0


def _parse(url: Union[str, ParseResult]) -> ParseResult:
    return urlparse(url) if isinstance(url, str) else url


@dataclass
class PooledConnection:
    key: str
    connection: http.client.HTTPConnection
    last_used: float


# Connection Management
class ConnectionPool:
    """Thread-safe HTTP connection pool.

    Holds at most one idle keep-alive connection per ``scheme://host:port``.
    A connection is removed from the table while checked out, so a handle is
    never shared between threads. The lock only guards the table; connecting,
    closing and the request I/O all happen outside it.
    """

    def __init__(self, config: Optional[Configuration] = None, max_size: int = POOL_SIZE,
                 keepalive_timeout: float = KEEPALIVE_TIMEOUT,
                 connection_factory: Optional[Callable[[ParseResult], http.client.HTTPConnection]] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.config = config or Configuration()
        self.max_size = max_size
        self.keepalive_timeout = keepalive_timeout
        self._connection_factory = connection_factory or self._create_connection
        self._clock = clock
        self._connections: Dict[str, PooledConnection] = {}
        self._lock = threading.Lock()
        self._ssl_context: Optional[ssl.SSLContext] = None

    @staticmethod
    def get_pool_key(parsed_url: ParseResult) -> str:
        """Get the pool key for a URL."""
        port = parsed_url.port or (443 if parsed_url.scheme == 'https' else 80)
        return f"{parsed_url.scheme}://{parsed_url.hostname}:{port}"

    def _get_ssl_context(self) -> ssl.SSLContext:
        if self._ssl_context is None:
            context = ssl.create_default_context(cafile=self.config.ca_bundle_path)
            if not self.config.verify_ssl_certs:
                context.check_hostname = False
                context.verify_mode = ssl.CERT_NONE
            self._ssl_context = context
        return self._ssl_context

    def _create_connection(self, parsed_url: ParseResult) -> http.client.HTTPConnection:
        """Create and connect a new connection for the given URL."""
        if parsed_url.scheme == 'https':
            conn = http.client.HTTPSConnection(
                parsed_url.hostname,
                parsed_url.port,
                timeout=self.config.open_timeout,
                context=self._get_ssl_context()
            )
        else:
            conn = http.client.HTTPConnection(
                parsed_url.hostname,
                parsed_url.port,
                timeout=self.config.open_timeout
            )

        try:
            conn.connect()
        except Exception:
            conn.close()
            raise

        # open_timeout bounds the handshake, timeout bounds every read/write after it
        conn.sock.settimeout(self.config.timeout)
        conn.timeout = self.config.timeout
        return conn

    @staticmethod
    def _is_alive(connection: http.client.HTTPConnection) -> bool:
        sock = getattr(connection, 'sock', None)
        if sock is None:
            # Not connected; http.client reopens it on the next request
            return True
        try:
            readable, _, _ = select.select([sock], [], [], 0)
        except (OSError, ValueError):
            return False
        # An idle keep-alive socket has nothing to read unless the peer hung up
        return not readable

    @staticmethod
    def _close(connection: http.client.HTTPConnection):
        try:
            connection.close()
        except OSError as e:
            logger.debug(f"Error closing pooled connection: {e}")

    def acquire(self, url: Union[str, ParseResult]) -> http.client.HTTPConnection:
        """Check out a live connection for `url`, opening a new one if needed."""
        parsed_url = _parse(url)
        pool_key = self.get_pool_key(parsed_url)

        with self._lock:
            entry = self._connections.pop(pool_key, None)
            now = self._clock()

        if entry is not None:
            if now - entry.last_used <= self.keepalive_timeout and self._is_alive(entry.connection):
                return entry.connection
            self._close(entry.connection)

        logger.debug(f"Opening connection to {pool_key}")
        return self._connection_factory(parsed_url)

    def release(self, url: Union[str, ParseResult], connection: http.client.HTTPConnection):
        """Return a connection to the pool, then sweep stale and surplus entries."""
        pool_key = self.get_pool_key(_parse(url))

        with self._lock:
            evicted = []
            previous = self._connections.get(pool_key)
            if previous is not None and previous.connection is not connection:
                evicted.append(previous.connection)
            self._connections[pool_key] = PooledConnection(pool_key, connection, self._clock())
            evicted.extend(self._sweep())

        for conn in evicted:
            self._close(conn)

    def _sweep(self) -> List[http.client.HTTPConnection]:
        """Drop idle and least-recently-used entries. Caller holds the lock."""
        now = self._clock()
        evicted = []
        for key, entry in list(self._connections.items()):
            if now - entry.last_used > self.keepalive_timeout:
                evicted.append(self._connections.pop(key).connection)

        while len(self._connections) > self.max_size:
            oldest = min(self._connections.values(), key=lambda entry: entry.last_used)
            logger.debug(f"Pool full, evicting {oldest.key}")
            evicted.append(self._connections.pop(oldest.key).connection)
        return evicted

    @contextmanager
    def connection(self, url: Union[str, ParseResult]):
        """Get a connection from the pool; it goes back only if the block succeeds."""
        parsed_url = _parse(url)
        conn = self.acquire(parsed_url)
        try:
            yield conn
        except BaseException:
            self._close(conn)
            raise
        self.release(parsed_url, conn)

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)

    def __contains__(self, url: Union[str, ParseResult]) -> bool:
        pool_key = self.get_pool_key(_parse(url))
        with self._lock:
            return pool_key in self._connections

    def close_all(self):
        """Close all connections in the pool."""
        with self._lock:
            connections = [entry.connection for entry in self._connections.values()]
            self._connections.clear()
        for conn in connections:
            self._close(conn)


# Retry Logic
class RetryConfig:
    """Configuration for transient-failure retries.

    The delay before retry ``k`` (1-based) is ``base_delay * 2 ** (k - 1)``
    capped at ``max_delay``. No jitter at this layer.
    """

    def __init__(self, max_retries: int = 3, base_delay: float = RETRY_DELAY,
                 max_delay: float = MAX_RETRY_DELAY):
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay

    def should_retry(self, retries: int, error: BaseException) -> bool:
        """Determine if a request should be retried after `retries` retries so far."""
        return retries < self.max_retries and is_transient(error)

    def get_delay(self, retry: int) -> float:
        """Calculate the delay before retry number `retry`."""
        return min(self.base_delay * (2 ** (retry - 1)), self.max_delay)


# Core Request Execution Logic
class ConnectionManager:
    """Executes HTTPRequests through the pool, retrying transient transport failures.

    HTTP-level failures (4xx/5xx) are returned as plain responses; classifying
    them is the response parser's job.
    """

    def __init__(self, config: Optional[Configuration] = None,
                 connection_pool: Optional[ConnectionPool] = None,
                 retry_config: Optional[RetryConfig] = None,
                 middleware: Optional[List[BaseMiddleware]] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.config = config or Configuration()
        self.connection_pool = connection_pool or ConnectionPool(self.config)
        self.retry_config = retry_config or RetryConfig(max_retries=self.config.max_retries)
        self.middleware = list(middleware or [])
        if self.config.debug and not any(isinstance(m, LoggingMiddleware) for m in self.middleware):
            self.middleware.append(LoggingMiddleware(self.config.get_logger()))
        self._sleep = sleep
        self._closed = False

    def execute(self, request: HTTPRequest) -> HTTPResponse:
        """Execute an HTTP request with retry logic and middleware."""
        if self._closed:
            raise RuntimeError("Connection manager is closed")

        # Process request through middleware
        for middleware in self.middleware:
            request = middleware.process_request(request)

        retries = 0
        while True:
            try:
                response = self._perform_request(request)
            except Exception as error:
                for middleware in self.middleware:
                    error = middleware.process_error(error, request)

                if not self.retry_config.should_retry(retries, error):
                    if retries:
                        logger.error(
                            f"{request.method.value} {request.parsed_url.path} failed after "
                            f"{retries + 1} attempts: {type(error).__name__}: {error}"
                        )
                    classified = ErrorFactory.from_exception(error, request.context())
                    if classified is error:
                        raise classified
                    raise classified from error

                retries += 1
                delay = self.retry_config.get_delay(retries)
                logger.warning(
                    f"Transient error on {request.method.value} {request.parsed_url.path}: "
                    f"{type(error).__name__}. Retrying in {delay:.2f}s "
                    f"(retry {retries}/{self.retry_config.max_retries})"
                )
                self._sleep(delay)
                continue

            # Process response through middleware
            for middleware in reversed(self.middleware):
                response = middleware.process_response(response)
            return response

    def _perform_request(self, request: HTTPRequest) -> HTTPResponse:
        """Execute a single HTTP request on a pooled connection."""
        start_time = time.monotonic()

        with self.connection_pool.connection(request.parsed_url) as conn:
            conn.request(request.method.value, request.path, body=request.body,
                         headers=dict(request.headers))
            response = conn.getresponse()
            body = response.read()
            headers = CaseInsensitiveDict(response.getheaders())
            status = response.status

        return HTTPResponse(
            status_code=status,
            headers=headers,
            body=body.decode('utf-8', errors='replace') if body else "",
            request=request,
            elapsed=time.monotonic() - start_time
        )

    def close(self):
        """Close the manager and all pooled connections."""
        self._closed = True
        self.connection_pool.close_all()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
