"""AttioConnect - A Python client for the Attio CRM REST API."""

# Import key classes for easier access
from .client import APIClient, create_client
from .base import ConnectionManager, ConnectionPool, RetryConfig
from .config import Configuration
from .error_factory import ErrorFactory
from .exceptions import (
    ErrorKind,
    APIError,
    ClientError,
    BadRequestError,
    InvalidRequestError,
    ConfigurationError,
    AuthenticationError,
    ForbiddenError,
    NotFoundError,
    ConflictError,
    UnprocessableEntityError,
    ValidationError,
    RateLimitError,
    ServerError,
    InternalServerError,
    BadGatewayError,
    ServiceUnavailableError,
    GatewayTimeoutError,
    ConnectionError,
    TimeoutError,
    SSLError,
    DNSError,
    SocketError,
    InvalidResponseError,
    SignatureVerificationError,
)
from .middlewares import BaseMiddleware, LoggingMiddleware
from .models import HTTPMethod, HTTPRequest, HTTPResponse, ListResponse
from .rate_limit import RateLimitHandler
from .request_builder import RequestBuilder, VERSION
from .response_parser import ResponseParser
from .webhook import WebhookSignature

__version__ = VERSION
