"""Test configuration and fixtures."""

import json
from typing import Any, Dict, List, Optional

import pytest

from AttioConnect.base import ConnectionManager, ConnectionPool, RetryConfig
from AttioConnect.config import Configuration


class FakeHTTPResponse:
    """Minimal stand-in for http.client.HTTPResponse."""

    def __init__(self, status: int = 200, headers: Optional[Dict[str, str]] = None,
                 body: Any = b""):
        if isinstance(body, (dict, list)):
            body = json.dumps(body)
        if isinstance(body, str):
            body = body.encode('utf-8')
        self.status = status
        self._headers = headers or {}
        self._body = body

    def read(self) -> bytes:
        return self._body

    def getheaders(self):
        return list(self._headers.items())


class FakeConnection:
    """Stand-in for http.client.HTTPConnection that replays scripted outcomes."""

    def __init__(self, transport: "FakeTransport", parsed_url):
        self.transport = transport
        self.host = parsed_url.hostname
        self.port = parsed_url.port
        self.scheme = parsed_url.scheme
        self.sock = None
        self.closed = False
        self._pending = None

    def request(self, method, url, body=None, headers=None):
        self.transport.requests.append({
            'method': method,
            'url': url,
            'body': body,
            'headers': dict(headers or {}),
            'connection': self,
        })
        outcome = self.transport.next_outcome()
        if isinstance(outcome, BaseException):
            raise outcome
        self._pending = outcome

    def getresponse(self):
        return self._pending

    def close(self):
        self.closed = True


class FakeTransport:
    """Connection factory for ConnectionPool; every connection shares one outcome script."""

    def __init__(self):
        self.outcomes: List[Any] = []
        self.default: Any = FakeHTTPResponse(200, body={})
        self.connections: List[FakeConnection] = []
        self.requests: List[Dict[str, Any]] = []
        self.connect_error: Optional[BaseException] = None

    @staticmethod
    def response(status: int = 200, headers: Optional[Dict[str, str]] = None, body: Any = b"") -> FakeHTTPResponse:
        return FakeHTTPResponse(status, headers, body)

    def queue(self, *outcomes):
        self.outcomes.extend(outcomes)
        return self

    def next_outcome(self):
        if self.outcomes:
            return self.outcomes.pop(0)
        return self.default

    def __call__(self, parsed_url) -> FakeConnection:
        if self.connect_error is not None:
            raise self.connect_error
        conn = FakeConnection(self, parsed_url)
        self.connections.append(conn)
        return conn


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def config():
    return Configuration(api_key="test_api_key")


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def pool(config, transport, clock):
    return ConnectionPool(config, connection_factory=transport, clock=clock)


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def manager(config, pool, sleeps):
    return ConnectionManager(
        config,
        connection_pool=pool,
        retry_config=RetryConfig(max_retries=config.max_retries),
        sleep=sleeps.append,
    )
