import json
import logging
from typing import Any, Dict, Mapping, Optional

from .error_factory import REQUEST_ID_HEADERS, ErrorFactory
from .exceptions import InvalidResponseError, RateLimitError
from .models import HTTPResponse, ListResponse
from .utils import get_header, parse_retry_after

logger = logging.getLogger(__name__)

PAGINATION_FIELDS = (
    'has_next_page',
    'has_previous_page',
    'page_size',
    'total_count',
    'next_cursor',
    'previous_cursor',
)


def parse_pagination(pagination: Any) -> Dict[str, Any]:
    """Keep the known pagination fields, omitting absent ones."""
    if not isinstance(pagination, Mapping):
        return {}
    return {name: pagination[name] for name in PAGINATION_FIELDS if pagination.get(name) is not None}


class ResponseParser:
    """Turns a raw HTTPResponse into a decoded payload or raises a typed error."""

    def __init__(self, response: HTTPResponse, request_context: Optional[Dict[str, Any]] = None):
        self.response = response
        self.request_context = request_context or {}

    @classmethod
    def parse(cls, response: HTTPResponse, request_context: Optional[Dict[str, Any]] = None) -> Any:
        return cls(response, request_context).parse_response()

    def parse_response(self) -> Any:
        if self.response.ok:
            return self._parse_success()
        raise self._build_error()

    def _parse_success(self) -> Any:
        body = self.response.body
        if not body or not body.strip():
            return None

        try:
            payload = json.loads(body)
        except ValueError as e:
            raise InvalidResponseError(
                f"Invalid JSON response: {e}",
                http_status=self.response.status_code,
                http_body=body,
                response_headers=self.response.headers,
                request_id=get_header(self.response.headers, *REQUEST_ID_HEADERS),
                request_url=self.request_context.get('url'),
                request_method=self.request_context.get('method'),
                request_params=self.request_context.get('params'),
                request_headers=self.request_context.get('headers'),
            ) from e

        if isinstance(payload, Mapping) and 'data' in payload and 'pagination' in payload:
            return ListResponse(
                data=payload['data'],
                pagination=parse_pagination(payload['pagination']),
                raw=payload,
            )
        return payload

    def _build_error(self):
        error = ErrorFactory.from_response(self.response, self.request_context)

        if isinstance(error, RateLimitError):
            retry_after = parse_retry_after(get_header(self.response.headers, 'retry-after'))
            if retry_after is not None:
                error.retry_after = retry_after

        logger.debug(f"API error {self.response.status_code}: {type(error).__name__}")
        return error
