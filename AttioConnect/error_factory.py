"""Maps HTTP statuses and transport exceptions onto the typed error hierarchy."""

import errno
import http.client
import json
import socket
import ssl
from typing import Any, Dict, Mapping, Optional, Tuple, Type

from .exceptions import (
    APIError, BadRequestError, AuthenticationError, ForbiddenError, NotFoundError,
    ConflictError, UnprocessableEntityError, ValidationError, RateLimitError,
    ClientError, InternalServerError, BadGatewayError, ServiceUnavailableError,
    GatewayTimeoutError, ServerError, ConnectionError, TimeoutError, SSLError,
    DNSError, SocketError,
)
from .models import HTTPResponse
from .utils import get_header, parse_retry_after

REQUEST_ID_HEADERS = ('x-request-id', 'request-id', 'x-attio-request-id')

STATUS_ERRORS: Dict[int, Type[APIError]] = {
    400: BadRequestError,
    401: AuthenticationError,
    403: ForbiddenError,
    404: NotFoundError,
    409: ConflictError,
    422: UnprocessableEntityError,
    429: RateLimitError,
    500: InternalServerError,
    502: BadGatewayError,
    503: ServiceUnavailableError,
    504: GatewayTimeoutError,
}

UNREACHABLE_ERRNOS = frozenset({errno.EHOSTUNREACH, errno.ENETUNREACH, errno.ECONNREFUSED,
                                errno.ECONNRESET, errno.ETIMEDOUT})

# Order matters: the first matching category wins. ssl.SSLError and socket.gaierror
# are both OSError subclasses and must be seen before the socket category.
EXCEPTION_ERRORS: Tuple[Tuple[Tuple[Type[BaseException], ...], Type[ConnectionError], str], ...] = (
    ((socket.timeout,), TimeoutError, "Request timed out"),
    ((ssl.SSLError, ssl.CertificateError), SSLError, "SSL error"),
    ((socket.gaierror, socket.herror), DNSError, "DNS resolution failed"),
    ((ConnectionRefusedError, ConnectionResetError, ConnectionAbortedError,
      BrokenPipeError), SocketError, "Connection failed"),
)


def error_class_for_status(status: Optional[int]) -> Type[APIError]:
    """Static status-to-class lookup with 4xx/5xx fallbacks."""
    if status in STATUS_ERRORS:
        return STATUS_ERRORS[status]
    if status is not None and 400 <= status < 500:
        return ClientError
    if status is not None and 500 <= status < 600:
        return ServerError
    return APIError


def error_class_for_exception(exception: BaseException) -> Type[ConnectionError]:
    for exception_types, error_class, _ in EXCEPTION_ERRORS:
        if isinstance(exception, exception_types):
            return error_class
    if isinstance(exception, OSError) and exception.errno in UNREACHABLE_ERRNOS:
        return SocketError
    return ConnectionError


def _prefix_for(error_class: Type[APIError]) -> str:
    for _, candidate, prefix in EXCEPTION_ERRORS:
        if candidate is error_class:
            return prefix
    return "Connection error"


def _parse_json(body: Optional[str]) -> Optional[Any]:
    if not body:
        return None
    try:
        return json.loads(body)
    except ValueError:
        return None


def _extract_error_data(json_body: Optional[Any], raw_body: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """Pull the provider message and code out of an error payload."""
    if isinstance(json_body, Mapping):
        detail = json_body.get('error') or json_body.get('message')
        if isinstance(detail, Mapping):
            detail = detail.get('message') or json.dumps(detail)
        code = json_body.get('code') or json_body.get('error_code')
        return (str(detail) if detail else None), (str(code) if code else None)
    return raw_body or None, None


def _validation_errors(json_body: Optional[Any]) -> Optional[Mapping[str, Any]]:
    if not isinstance(json_body, Mapping):
        return None
    errors = json_body.get('errors') or json_body.get('validation_errors')
    return errors if isinstance(errors, Mapping) and errors else None


class ErrorFactory:
    """Single source of truth for turning failures into typed errors."""

    @staticmethod
    def from_response(response: HTTPResponse, context: Optional[Dict[str, Any]] = None,
                      message: Optional[str] = None) -> APIError:
        context = context or {}
        status = response.status_code
        body = response.body
        headers = response.headers

        json_body = _parse_json(body)
        detail, code = _extract_error_data(json_body, body)
        error_class = error_class_for_status(status)

        extra: Dict[str, Any] = {}
        if error_class is UnprocessableEntityError:
            field_errors = _validation_errors(json_body)
            if field_errors:
                error_class = ValidationError
                extra['errors'] = field_errors
        if error_class is ServiceUnavailableError:
            extra['retry_after'] = parse_retry_after(get_header(headers, 'retry-after'))

        base_message = message or error_class.default_message
        if error_class is APIError and not message:
            base_message = f"API request failed with status {status}"

        return error_class(
            f"{base_message}: {detail}" if detail else base_message,
            code=code,
            request_id=get_header(headers, *REQUEST_ID_HEADERS),
            http_status=status,
            http_body=body,
            json_body=json_body,
            request_url=context.get('url'),
            request_method=context.get('method'),
            request_params=context.get('params'),
            request_headers=context.get('headers'),
            response_headers=headers,
            **extra
        )

    @staticmethod
    def from_exception(exception: BaseException, context: Optional[Dict[str, Any]] = None) -> APIError:
        if isinstance(exception, APIError):
            return exception

        context = context or {}
        error_class = error_class_for_exception(exception)
        if error_class is ConnectionError:
            message = f"Connection error: {type(exception).__name__} - {exception}"
        else:
            message = f"{_prefix_for(error_class)}: {exception}"

        headers = context.get('headers') or {}
        return error_class(
            message,
            request_id=get_header(headers, *REQUEST_ID_HEADERS),
            request_url=context.get('url'),
            request_method=context.get('method'),
            request_params=context.get('params'),
            request_headers=headers,
        )


def is_transient(exception: BaseException) -> bool:
    """Whether a transport exception is worth retrying."""
    if isinstance(exception, APIError):
        return False
    if isinstance(exception, (socket.timeout, http.client.HTTPException)):
        return True
    if isinstance(exception, ssl.SSLError):
        return False
    if isinstance(exception, (socket.gaierror, ConnectionRefusedError, ConnectionResetError,
                              ConnectionAbortedError)):
        return True
    return isinstance(exception, OSError) and exception.errno in UNREACHABLE_ERRNOS
