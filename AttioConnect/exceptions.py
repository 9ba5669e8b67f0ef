import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from .utils import sanitize_headers, sanitize_params, truncate_body


class ErrorKind(str, Enum):
    """Category of failure, independent of the exception class raised."""
    ERROR = "error"
    BAD_REQUEST = "bad_request"
    INVALID_REQUEST = "invalid_request"
    CONFIGURATION = "configuration"
    AUTHENTICATION = "authentication"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    UNPROCESSABLE_ENTITY = "unprocessable_entity"
    VALIDATION = "validation"
    RATE_LIMIT = "rate_limit"
    CLIENT_ERROR = "client_error"
    INTERNAL_SERVER = "internal_server"
    BAD_GATEWAY = "bad_gateway"
    SERVICE_UNAVAILABLE = "service_unavailable"
    GATEWAY_TIMEOUT = "gateway_timeout"
    SERVER_ERROR = "server_error"
    CONNECTION = "connection"
    TIMEOUT = "timeout"
    SSL = "ssl"
    DNS = "dns"
    SOCKET = "socket"
    INVALID_RESPONSE = "invalid_response"
    SIGNATURE_VERIFICATION = "signature_verification"


# Exceptions
class APIError(Exception):
    """Base exception for API-related errors.

    Carries the diagnostic context of the failed call: the sanitized request,
    the (truncated) response and a UTC timestamp of when it was classified.
    ``http_status`` is only ever set when an HTTP response was received.
    """
    kind = ErrorKind.ERROR
    default_message = "An error occurred while talking to the Attio API"

    def __init__(self, message: Optional[str] = None, *, code: Optional[str] = None,
                 request_id: Optional[str] = None, http_status: Optional[int] = None,
                 http_body: Optional[str] = None, json_body: Optional[Any] = None,
                 request_url: Optional[str] = None, request_method: Optional[str] = None,
                 request_params: Optional[Any] = None,
                 request_headers: Optional[Mapping[str, str]] = None,
                 response_headers: Optional[Mapping[str, str]] = None,
                 retry_after: Optional[int] = None):
        self.message = message or self.default_message
        self.code = code
        self.request_id = request_id
        self.http_status = http_status
        self.http_body = http_body
        self.json_body = json_body
        self.request_url = request_url
        self.request_method = request_method
        self.request_params = request_params
        self.request_headers = dict(request_headers) if request_headers else None
        self.response_headers = dict(response_headers) if response_headers else None
        self.retry_after = retry_after
        self.occurred_at = datetime.now(timezone.utc)
        super().__init__(self._build_message())

    def _build_message(self) -> str:
        parts = [self.message]
        if self.code:
            parts.append(f"(Code: {self.code})")
        if self.http_status:
            parts.append(f"(Status: {self.http_status})")
        if self.request_id:
            parts.append(f"(Request ID: {self.request_id})")
        return " ".join(parts)

    @property
    def sanitized_request_headers(self) -> Optional[Dict[str, str]]:
        if self.request_headers is None:
            return None
        return sanitize_headers(self.request_headers)

    @property
    def truncated_body(self) -> Optional[str]:
        return truncate_body(self.http_body)

    def _error_section(self) -> Dict[str, Any]:
        return {
            'type': type(self).__name__,
            'kind': self.kind.value,
            'message': self.message,
            'code': self.code,
            'request_id': self.request_id,
            'http_status': self.http_status,
            'retry_after': self.retry_after,
            'occurred_at': self.occurred_at.isoformat(),
        }

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        """Structured diagnostic mapping, secrets redacted, empty sections omitted."""
        sections = {
            'error': self._error_section(),
            'request': {
                'url': self.request_url,
                'method': self.request_method,
                'params': sanitize_params(self.request_params),
                'headers': self.sanitized_request_headers,
            },
            'response': {
                'headers': self.response_headers,
                'body': self.truncated_body,
            },
        }
        result = {}
        for name, section in sections.items():
            compacted = {key: value for key, value in section.items() if value is not None}
            if compacted:
                result[name] = compacted
        return result

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)

    def __repr__(self) -> str:
        attrs = [f"message={self.message!r}"]
        if self.code:
            attrs.append(f"code={self.code!r}")
        if self.http_status:
            attrs.append(f"http_status={self.http_status}")
        if self.request_id:
            attrs.append(f"request_id={self.request_id!r}")
        return f"<{type(self).__name__} {' '.join(attrs)}>"


# 4xx
class ClientError(APIError):
    """Raised for 4xx responses without a more specific class."""
    kind = ErrorKind.CLIENT_ERROR
    default_message = "Client error occurred"

class BadRequestError(ClientError):
    kind = ErrorKind.BAD_REQUEST
    default_message = "The request was invalid or cannot be served"

class InvalidRequestError(BadRequestError):
    """Raised before any request is sent, when the call itself is invalid."""
    kind = ErrorKind.INVALID_REQUEST
    default_message = "Invalid request parameters"

class ConfigurationError(InvalidRequestError):
    kind = ErrorKind.CONFIGURATION
    default_message = "Invalid configuration"

class AuthenticationError(ClientError):
    """Raised when authentication fails or no API key is available."""
    kind = ErrorKind.AUTHENTICATION
    default_message = "Authentication failed. Please check your API key"

class ForbiddenError(ClientError):
    kind = ErrorKind.FORBIDDEN
    default_message = "You do not have permission to access this resource"

class NotFoundError(ClientError):
    kind = ErrorKind.NOT_FOUND
    default_message = "The requested resource could not be found"

class ConflictError(ClientError):
    kind = ErrorKind.CONFLICT
    default_message = "The request conflicts with the current state of the resource"

class UnprocessableEntityError(ClientError):
    kind = ErrorKind.UNPROCESSABLE_ENTITY
    default_message = "The request was well-formed but contains semantic errors"

class ValidationError(UnprocessableEntityError):
    """422 carrying field-level validation details."""
    kind = ErrorKind.VALIDATION
    default_message = "Validation failed"

    def __init__(self, message: Optional[str] = None, *,
                 errors: Optional[Mapping[str, Any]] = None, **kwargs):
        self.errors = dict(errors or {})
        super().__init__(self._with_field_errors(message or self.default_message), **kwargs)

    def _with_field_errors(self, message: str) -> str:
        if not self.errors:
            return message
        details = []
        for field_name, messages in self.errors.items():
            if not isinstance(messages, (list, tuple)):
                messages = [messages]
            details.append(f"{field_name}: {', '.join(str(m) for m in messages)}")
        return f"{message} - {'; '.join(details)}"

    def _error_section(self) -> Dict[str, Any]:
        section = super()._error_section()
        if self.errors:
            section['validation_errors'] = self.errors
        return section

class RateLimitError(ClientError):
    """Raised when rate limit is exceeded. ``retry_after`` is in seconds."""
    kind = ErrorKind.RATE_LIMIT
    default_message = "Rate limit exceeded"


# 5xx
class ServerError(APIError):
    """Raised for 5xx responses without a more specific class."""
    kind = ErrorKind.SERVER_ERROR
    default_message = "Server error occurred"

class InternalServerError(ServerError):
    kind = ErrorKind.INTERNAL_SERVER
    default_message = "An internal server error occurred"

class BadGatewayError(ServerError):
    kind = ErrorKind.BAD_GATEWAY
    default_message = "Bad gateway error occurred"

class ServiceUnavailableError(ServerError):
    kind = ErrorKind.SERVICE_UNAVAILABLE
    default_message = "Service is temporarily unavailable"

class GatewayTimeoutError(ServerError):
    kind = ErrorKind.GATEWAY_TIMEOUT
    default_message = "Gateway timeout occurred"


# Transport
class ConnectionError(APIError):
    """Raised when connection fails."""
    kind = ErrorKind.CONNECTION
    default_message = "Network connection error occurred"

class TimeoutError(ConnectionError):
    """Raised when request times out."""
    kind = ErrorKind.TIMEOUT
    default_message = "Request timed out"

class SSLError(ConnectionError):
    kind = ErrorKind.SSL
    default_message = "SSL/TLS connection error occurred"

class DNSError(ConnectionError):
    kind = ErrorKind.DNS
    default_message = "DNS resolution failed"

class SocketError(ConnectionError):
    kind = ErrorKind.SOCKET
    default_message = "Socket error occurred"


class InvalidResponseError(APIError):
    """Raised when a successful response carries a body that is not valid JSON."""
    kind = ErrorKind.INVALID_RESPONSE
    default_message = "Invalid response received from the API"

class SignatureVerificationError(APIError):
    kind = ErrorKind.SIGNATURE_VERIFICATION
    default_message = "Webhook signature verification failed"
