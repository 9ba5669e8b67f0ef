"""Application-level retries for rate-limited calls.

Independent of the connection manager's transport retries: wrap a single
request or a whole multi-request operation, and a ``RateLimitError`` is
retried after a jittered wait until ``max_attempts`` is exhausted.
"""

import functools
import logging
import random
import time
from typing import Any, Callable, Optional, TypeVar

from .exceptions import RateLimitError

T = TypeVar("T")

DEFAULT_WAIT_TIME = 60
MAX_WAIT_TIME = 300
JITTER_FACTOR = 0.1


class RateLimitHandler:
    """Computes rate-limit waits and retries callables that hit the limit."""

    def __init__(self, default_wait: float = DEFAULT_WAIT_TIME, max_wait: float = MAX_WAIT_TIME,
                 jitter_factor: float = JITTER_FACTOR, logger: Optional[logging.Logger] = None,
                 sleep: Callable[[float], None] = time.sleep,
                 rand: Callable[[], float] = random.random):
        self.default_wait = default_wait
        self.max_wait = max_wait
        self.jitter_factor = jitter_factor
        self.logger = logger or logging.getLogger(__name__)
        self._sleep = sleep
        self._rand = rand

    def compute_wait(self, error: Any, attempt: int = 1) -> float:
        """Seconds to wait before retrying after `error` on attempt `attempt` (1-based)."""
        retry_after = getattr(error, 'retry_after', None)
        if retry_after is not None:
            base_wait = min(retry_after, self.max_wait)
        else:
            base_wait = min(self.default_wait * (2 ** (attempt - 1)), self.max_wait)
        return self._add_jitter(base_wait)

    def _add_jitter(self, base_wait: float) -> float:
        jitter = base_wait * self.jitter_factor
        return base_wait + (self._rand() * jitter * 2) - jitter

    def with_retry(self, func: Callable[..., T], *args: Any, max_attempts: int = 3, **kwargs: Any) -> T:
        """Call `func`, retrying on RateLimitError until `max_attempts` calls were made."""
        attempt = 0
        while True:
            attempt += 1
            try:
                return func(*args, **kwargs)
            except RateLimitError as e:
                if attempt >= max_attempts:
                    self.logger.warning(f"[Attio] Rate limit hit (attempt {attempt}): Max attempts reached")
                    self.logger.debug(f"[Attio] Rate limit details: {e}")
                    raise

                wait_time = self.compute_wait(e, attempt)
                self.logger.warning(f"[Attio] Rate limit hit (attempt {attempt}): Waiting {wait_time:.2f}s")
                self.logger.debug(f"[Attio] Rate limit details: {e}")
                self._sleep(wait_time)

    def retrying(self, max_attempts: int = 3):
        """Decorator form of `with_retry`."""
        def decorator(func: Callable[..., T]) -> Callable[..., T]:
            @functools.wraps(func)
            def wrapper(*args: Any, **kwargs: Any) -> T:
                return self.with_retry(func, *args, max_attempts=max_attempts, **kwargs)
            return wrapper
        return decorator
