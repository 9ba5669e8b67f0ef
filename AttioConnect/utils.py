import json
import re
import time
from collections.abc import MutableMapping
from email.utils import parsedate_to_datetime
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple

REDACTED = "[REDACTED]"
SENSITIVE_NAME_PATTERN = re.compile(r"api[-_]?key|auth|token|secret|password", re.IGNORECASE)
SENSITIVE_PAIR_PATTERN = re.compile(
    r"((?:api[-_]?key|access_token|refresh_token|client_secret|password)=)([^&\s]+)",
    re.IGNORECASE,
)
MAX_BODY_LENGTH = 1000
TRUNCATION_MARKER = "... (truncated)"


class CaseInsensitiveDict(MutableMapping):
    """Dict-like mapping whose key lookups ignore case. Keeps the last-set casing."""

    def __init__(self, data: Optional[Any] = None, **kwargs):
        self._store: Dict[str, Tuple[str, Any]] = {}
        self.update(data or {}, **kwargs)

    def __setitem__(self, key: str, value: Any):
        self._store[key.lower()] = (key, value)

    def __getitem__(self, key: str) -> Any:
        return self._store[key.lower()][1]

    def __delitem__(self, key: str):
        del self._store[key.lower()]

    def __iter__(self) -> Iterator[str]:
        return (original for original, _ in self._store.values())

    def __len__(self) -> int:
        return len(self._store)

    def lower_items(self) -> Iterator[Tuple[str, Any]]:
        return ((lower, pair[1]) for lower, pair in self._store.items())

    def __eq__(self, other) -> bool:
        if not isinstance(other, Mapping):
            return NotImplemented
        return dict(self.lower_items()) == dict(CaseInsensitiveDict(other).lower_items())

    def copy(self) -> "CaseInsensitiveDict":
        return CaseInsensitiveDict(self._store.values())

    def __repr__(self) -> str:
        return str(dict(self.items()))


def normalize_header_key(key: Any) -> str:
    """Turn `x_custom-header` into `X-Custom-Header`."""
    return "-".join(part.capitalize() for part in re.split(r"[-_]", str(key)))


def is_sensitive(name: Any) -> bool:
    return bool(SENSITIVE_NAME_PATTERN.search(str(name)))


def sanitize_headers(headers: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Replace the values of credential-like headers with a redaction marker."""
    if not headers:
        return {}
    return {key: (REDACTED if is_sensitive(key) else value) for key, value in headers.items()}


def sanitize_params(params: Any) -> Any:
    """Recursively redact credential-like keys in a params structure."""
    if isinstance(params, Mapping):
        return {
            key: (REDACTED if is_sensitive(key) else sanitize_params(value))
            for key, value in params.items()
        }
    if isinstance(params, (list, tuple)):
        return [sanitize_params(item) for item in params]
    return params


def sanitize_body(body: Any) -> Optional[str]:
    """Sanitize a request/response body for logging."""
    if body is None:
        return None
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    if isinstance(body, (Mapping, list)):
        return json.dumps(sanitize_params(body))
    try:
        parsed = json.loads(body)
    except (TypeError, ValueError):
        return SENSITIVE_PAIR_PATTERN.sub(lambda match: match.group(1) + REDACTED, str(body))
    return json.dumps(sanitize_params(parsed))


def truncate_body(body: Optional[str], limit: int = MAX_BODY_LENGTH) -> Optional[str]:
    if body is None:
        return None
    if len(body) > limit:
        return f"{body[:limit]}{TRUNCATION_MARKER}"
    return body


def get_header(headers: Optional[Mapping[str, Any]], *names: str) -> Optional[Any]:
    """Return the first header matching any of `names`, ignoring case."""
    if not headers:
        return None
    lowered = {str(key).lower(): value for key, value in headers.items()}
    for name in names:
        value = lowered.get(name.lower())
        if value not in (None, ""):
            return value
    return None


def parse_retry_after(value: Any) -> Optional[int]:
    """Parse a Retry-After header: delta-seconds or an HTTP-date."""
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        return max(0, int(float(text)))
    except (ValueError, OverflowError):
        pass
    try:
        retry_at = parsedate_to_datetime(text)
    except (TypeError, ValueError, IndexError):
        return None
    if retry_at is None:
        return None
    return max(0, int(retry_at.timestamp() - time.time()))
