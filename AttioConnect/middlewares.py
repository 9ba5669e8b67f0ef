import logging
from typing import Optional

from .models import HTTPRequest, HTTPResponse
from .utils import sanitize_body, sanitize_headers, sanitize_params, truncate_body


# Middleware System
class BaseMiddleware:
    """Base class for HTTP middleware."""

    def process_request(self, request: HTTPRequest) -> HTTPRequest:
        """Process the request before it's sent."""
        return request

    def process_response(self, response: HTTPResponse) -> HTTPResponse:
        """Process the response after it's received."""
        return response

    def process_error(self, error: Exception, request: HTTPRequest) -> Exception:
        """Process an error that occurred during the request."""
        return error


class LoggingMiddleware(BaseMiddleware):
    """Middleware for logging requests and responses with credentials redacted."""

    def __init__(self, logger: Optional[logging.Logger] = None, log_bodies: bool = True):
        self.logger = logger or logging.getLogger(__name__)
        self.log_bodies = log_bodies

    def process_request(self, request: HTTPRequest) -> HTTPRequest:
        url = request.parsed_url._replace(query="").geturl()
        self.logger.debug(f"[Attio] Request: {request.method.value} {url}")
        if request.params:
            self.logger.debug(f"[Attio] Params: {sanitize_params(request.params)}")
        self.logger.debug(f"[Attio] Headers: {sanitize_headers(request.headers)}")
        if self.log_bodies and request.body:
            self.logger.debug(f"[Attio] Body: {truncate_body(sanitize_body(request.body))}")
        return request

    def process_response(self, response: HTTPResponse) -> HTTPResponse:
        self.logger.debug(f"[Attio] Response: {response.status_code} ({response.elapsed:.3f}s)")
        self.logger.debug(f"[Attio] Headers: {sanitize_headers(response.headers)}")
        if self.log_bodies and response.body:
            self.logger.debug(f"[Attio] Body: {truncate_body(sanitize_body(response.body))}")
        return response

    def process_error(self, error: Exception, request: HTTPRequest) -> Exception:
        url = request.parsed_url._replace(query="").geturl()
        self.logger.error(f"[Attio] Request failed: {request.method.value} {url} - {error}")
        return error
