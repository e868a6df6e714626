"""
Retry and circuit-breaking for calls to the external scoring model.

A model outage must degrade into per-candidate failures, not a hung batch:
transient transport errors are retried with exponential backoff, and a
circuit breaker stops hammering the provider once it keeps failing.
"""

import functools
import time
from datetime import datetime
from typing import Callable, Optional, Tuple, Type


class RetryError(Exception):
    """Raised when all retry attempts are exhausted."""
    pass


class CircuitOpenError(Exception):
    """Raised instead of calling the model while the circuit is open."""
    pass


def exponential_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    exponential_base: float = 2.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
    on_retry: Optional[Callable] = None,
):
    """
    Decorator retrying a call with exponentially growing sleeps.

    Args:
        max_retries: Retry attempts after the first call (0 = no retries)
        base_delay: First sleep in seconds
        max_delay: Upper bound for any single sleep
        exponential_base: Multiplier applied to the delay after each failure
        exceptions: Exception types that trigger a retry; others propagate at once
        on_retry: Optional callback(attempt, exception, delay)

    Example:
        @exponential_backoff(max_retries=2, exceptions=(requests.exceptions.Timeout,))
        def post_completion(payload):
            return requests.post(url, json=payload, timeout=30)
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            delay = base_delay
            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt >= max_retries:
                        raise RetryError(
                            f"Failed after {max_retries + 1} attempts: {type(e).__name__}"
                        ) from e
                    current_delay = min(delay, max_delay)
                    if on_retry:
                        on_retry(attempt + 1, e, current_delay)
                    time.sleep(current_delay)
                    delay *= exponential_base
            raise RetryError("Retry loop exited without a result")

        return wrapper
    return decorator


class CircuitBreaker:
    """
    Blocks calls to a failing provider.

    States:
    - CLOSED: calls pass through
    - OPEN: failure threshold reached, calls are rejected until recovery_timeout passes
    - HALF_OPEN: one trial call decides whether to close again
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60,
        expected_exception: Type[Exception] = Exception,
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.expected_exception = expected_exception

        self.failure_count = 0
        self.last_failure_time: Optional[datetime] = None
        self.state = self.CLOSED

    def call(self, func: Callable, *args, **kwargs):
        """
        Run func under breaker protection.

        Raises:
            CircuitOpenError: If the circuit is OPEN and not ready to retry
            Original exception: If func fails while CLOSED or HALF_OPEN
        """
        if self.state == self.OPEN:
            if self._should_attempt_reset():
                self.state = self.HALF_OPEN
            else:
                raise CircuitOpenError(
                    f"Circuit breaker is OPEN. Model unavailable. "
                    f"Retry after {self._time_until_reset():.0f}s"
                )

        try:
            result = func(*args, **kwargs)
        except self.expected_exception:
            self._on_failure()
            raise
        self._on_success()
        return result

    def _elapsed(self) -> float:
        return (datetime.now() - self.last_failure_time).total_seconds()

    def _should_attempt_reset(self) -> bool:
        if self.last_failure_time is None:
            return True
        return self._elapsed() >= self.recovery_timeout

    def _time_until_reset(self) -> float:
        if self.last_failure_time is None:
            return 0
        return max(0, self.recovery_timeout - self._elapsed())

    def _on_success(self):
        self.failure_count = 0
        self.state = self.CLOSED

    def _on_failure(self):
        self.failure_count += 1
        self.last_failure_time = datetime.now()
        if self.state == self.HALF_OPEN or self.failure_count >= self.failure_threshold:
            self.state = self.OPEN

    def reset(self):
        """Manually close the circuit."""
        self.failure_count = 0
        self.last_failure_time = None
        self.state = self.CLOSED


TRANSIENT_HINTS = (
    "timeout",
    "timed out",
    "connection",
    "temporary failure",
    "service unavailable",
    "overloaded",
    "rate limit",
    "503",
    "502",
    "500",
    "429",
)


def is_transient_error(exception: Exception) -> bool:
    """True when the error text looks like a timeout, connection drop, 5xx or rate limit."""
    error_str = str(exception).lower()
    return any(hint in error_str for hint in TRANSIENT_HINTS)


RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


def should_retry_http_status(status_code: int) -> bool:
    return status_code in RETRYABLE_STATUS_CODES
