from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Union
from urllib.parse import urlparse

from .utils import CaseInsensitiveDict, get_header, sanitize_headers, sanitize_params

REQUEST_ID_HEADER = "X-Request-Id"


class HTTPMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    HEAD = "HEAD"

    @classmethod
    def parse(cls, value: Union[str, "HTTPMethod"]) -> "HTTPMethod":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).upper())
        except ValueError:
            raise ValueError(f"Unsupported HTTP method: {value}") from None

    @property
    def has_body(self) -> bool:
        return self not in (HTTPMethod.GET, HTTPMethod.HEAD)


# Request/Response Models
@dataclass(frozen=True)
class HTTPRequest:
    """Represents an HTTP request, fully built and ready for transport."""
    method: HTTPMethod
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Optional[bytes] = None
    params: Optional[Any] = None

    def __post_init__(self):
        object.__setattr__(self, "method", HTTPMethod.parse(self.method))
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))

    @property
    def parsed_url(self):
        return urlparse(self.url)

    @property
    def path(self) -> str:
        """Path plus query string, as sent on the request line."""
        parsed_url = self.parsed_url
        path = parsed_url.path or '/'
        if parsed_url.query:
            path += '?' + parsed_url.query
        return path

    @property
    def request_id(self) -> Optional[str]:
        return get_header(self.headers, REQUEST_ID_HEADER)

    def context(self) -> Dict[str, Any]:
        """Request details attached to errors, with credentials redacted."""
        return {
            'url': self.url,
            'method': self.method.value,
            'params': sanitize_params(self.params),
            'headers': sanitize_headers(self.headers),
        }


@dataclass
class HTTPResponse:
    """Represents a raw HTTP response."""
    status_code: int
    headers: CaseInsensitiveDict
    body: str
    request: Optional[HTTPRequest] = None
    elapsed: float = 0.0

    def __post_init__(self):
        if not isinstance(self.headers, CaseInsensitiveDict):
            self.headers = CaseInsensitiveDict(self.headers or {})

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


@dataclass
class ListResponse:
    """A page of results plus its normalized pagination info."""
    data: List[Any]
    pagination: Dict[str, Any] = field(default_factory=dict)
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def has_next_page(self) -> bool:
        return bool(self.pagination.get('has_next_page'))

    @property
    def next_cursor(self) -> Optional[str]:
        return self.pagination.get('next_cursor')

    def __iter__(self):
        return iter(self.data or [])
