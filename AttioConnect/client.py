"""
Attio REST API client.

Wires the request pipeline together: RequestBuilder -> ConnectionManager ->
ResponseParser. One client owns one connection pool, shared by every call
made through it.
"""

import logging
from typing import Any, List, Mapping, Optional, Union

from .base import ConnectionManager, ConnectionPool, RetryConfig
from .config import Configuration
from .middlewares import BaseMiddleware
from .models import HTTPMethod
from .rate_limit import RateLimitHandler
from .request_builder import RequestBuilder
from .response_parser import ResponseParser

logger = logging.getLogger(__name__)


class APIClient:
    """Synchronous Attio API client. Safe to share between threads."""

    def __init__(self, api_key: Optional[str] = None,
                 config: Optional[Configuration] = None,
                 connection_pool: Optional[ConnectionPool] = None,
                 retry_config: Optional[RetryConfig] = None,
                 middleware: Optional[List[BaseMiddleware]] = None,
                 rate_limit_handler: Optional[RateLimitHandler] = None):
        config = config or Configuration()
        if api_key is not None:
            config = config.merge(api_key=api_key)
        self.config = config.finalize()

        self._builder = RequestBuilder(self.config)
        self._connection_manager = ConnectionManager(
            self.config,
            connection_pool=connection_pool or ConnectionPool(self.config),
            retry_config=retry_config,
            middleware=middleware,
        )
        self.rate_limit_handler = rate_limit_handler

    @property
    def connection_pool(self) -> ConnectionPool:
        return self._connection_manager.connection_pool

    def request(self, method: Union[str, HTTPMethod], path: str, params: Optional[Any] = None,
                headers: Optional[Mapping[str, Any]] = None,
                api_key: Optional[str] = None) -> Any:
        """Make a request and return the decoded payload, raising a typed error on failure."""
        if self.rate_limit_handler is None:
            return self._request_once(method, path, params, headers, api_key)
        return self.rate_limit_handler.with_retry(
            self._request_once, method, path, params, headers, api_key,
            max_attempts=self.config.max_retries + 1,
        )

    def _request_once(self, method, path, params, headers, api_key) -> Any:
        request = self._builder.build(method, path, params=params, headers=headers, api_key=api_key)
        response = self._connection_manager.execute(request)
        return ResponseParser.parse(response, request.context())

    def get(self, path: str, params: Optional[Any] = None, **kwargs: Any) -> Any:
        return self.request(HTTPMethod.GET, path, params, **kwargs)

    def post(self, path: str, params: Optional[Any] = None, **kwargs: Any) -> Any:
        return self.request(HTTPMethod.POST, path, params, **kwargs)

    def put(self, path: str, params: Optional[Any] = None, **kwargs: Any) -> Any:
        return self.request(HTTPMethod.PUT, path, params, **kwargs)

    def patch(self, path: str, params: Optional[Any] = None, **kwargs: Any) -> Any:
        return self.request(HTTPMethod.PATCH, path, params, **kwargs)

    def delete(self, path: str, params: Optional[Any] = None, **kwargs: Any) -> Any:
        return self.request(HTTPMethod.DELETE, path, params, **kwargs)

    def head(self, path: str, params: Optional[Any] = None, **kwargs: Any) -> Any:
        return self.request(HTTPMethod.HEAD, path, params, **kwargs)

    def close(self):
        """Close the client and all connections."""
        self._connection_manager.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def create_client(api_key: Optional[str] = None, env_file: Optional[str] = None,
                  **settings: Any) -> APIClient:
    """Build a client configured from ATTIO_* environment variables."""
    if api_key is not None:
        settings['api_key'] = api_key
    config = Configuration.from_env(env_file, **settings)
    logger.debug(f"Creating Attio client for {config.api_base}/{config.api_version}")
    return APIClient(config=config)
