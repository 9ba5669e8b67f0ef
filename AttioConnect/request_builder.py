import json
import platform
import secrets
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union
from urllib.parse import urlencode

from .config import Configuration
from .exceptions import AuthenticationError, InvalidRequestError
from .models import HTTPMethod, HTTPRequest, REQUEST_ID_HEADER
from .utils import normalize_header_key

VERSION = "0.1.0"
API_VERSION = "v2"
USER_AGENT = f"AttioConnect/{VERSION} Python/{platform.python_version()}"
BASE_HEADERS = {
    'User-Agent': USER_AGENT,
    'Accept': 'application/json',
    'Content-Type': 'application/json',
}


def normalize_params(params: Any) -> Any:
    """Recursively stringify mapping keys and symbolic (enum) values."""
    if isinstance(params, Mapping):
        return {str(key): normalize_params(value) for key, value in params.items()}
    if isinstance(params, (list, tuple)):
        return [normalize_params(value) for value in params]
    if isinstance(params, Enum):
        return params.value
    return params


def _to_query_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def flatten_params(params: Mapping[str, Any], parent_key: Optional[str] = None) -> List[Tuple[str, str]]:
    """Flatten nested params into bracketed keys: parent[child], parent[0]."""
    result: List[Tuple[str, str]] = []
    for key, value in params.items():
        full_key = f"{parent_key}[{key}]" if parent_key else str(key)
        if isinstance(value, Mapping):
            result.extend(flatten_params(value, full_key))
        elif isinstance(value, (list, tuple)):
            for index, item in enumerate(value):
                item_key = f"{full_key}[{index}]"
                if isinstance(item, Mapping):
                    result.extend(flatten_params(item, item_key))
                else:
                    result.append((item_key, _to_query_value(item)))
        else:
            result.append((full_key, _to_query_value(value)))
    return result


def generate_request_id() -> str:
    return f"req_{secrets.token_hex(16)}"


class RequestBuilder:
    """Turns (method, path, params, headers, api key) into an HTTPRequest. Does no I/O."""

    def __init__(self, config: Optional[Configuration] = None):
        self.config = config or Configuration()

    def build(self, method: Union[str, HTTPMethod], path: str, params: Optional[Any] = None,
              headers: Optional[Mapping[str, Any]] = None,
              api_key: Optional[str] = None) -> HTTPRequest:
        method = HTTPMethod.parse(method)
        api_key = api_key or self.config.api_key
        self._validate_api_key(api_key)
        if not method.has_body and params is not None and not isinstance(params, Mapping):
            raise InvalidRequestError(
                f"Query parameters for {method.value} must be a mapping, got {type(params).__name__}"
            )

        return HTTPRequest(
            method=method,
            url=self.build_url(method, path, params),
            headers=self.build_headers(api_key, headers),
            body=self.build_body(method, params),
            params=params,
        )

    @staticmethod
    def _validate_api_key(api_key: Optional[str]):
        if not api_key or not str(api_key).strip():
            raise AuthenticationError(
                "No API key provided. Set ATTIO_API_KEY, configure api_key or pass api_key to the call"
            )

    def build_url(self, method: HTTPMethod, path: str, params: Optional[Any] = None) -> str:
        base_url = self.config.api_base.rstrip('/')
        version = (self.config.api_version or API_VERSION).strip('/')
        path = path if path.startswith('/') else f"/{path}"

        url = f"{base_url}/{version}{path}"
        if not method.has_body and params:
            url += '?' + self.encode_params(params)
        return url

    @staticmethod
    def encode_params(params: Mapping[str, Any]) -> str:
        return urlencode(flatten_params(normalize_params(params)))

    @staticmethod
    def build_headers(api_key: str, headers: Optional[Mapping[str, Any]] = None) -> Dict[str, str]:
        request_headers = dict(BASE_HEADERS)
        request_headers['Authorization'] = f"Bearer {api_key}"
        request_headers[REQUEST_ID_HEADER] = generate_request_id()

        for key, value in (headers or {}).items():
            request_headers[normalize_header_key(key)] = str(value)
        return request_headers

    @staticmethod
    def build_body(method: HTTPMethod, params: Optional[Any] = None) -> Optional[bytes]:
        if not method.has_body or not params:
            return None
        return json.dumps(normalize_params(params)).encode('utf-8')
