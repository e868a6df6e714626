"""
Tests for retry.py - backoff and circuit breaking around model calls.
"""

import time

import pytest

from fairhire.retry import (
    CircuitBreaker,
    CircuitOpenError,
    RetryError,
    exponential_backoff,
    is_transient_error,
    should_retry_http_status,
)


class TestExponentialBackoff:
    """Test the backoff decorator."""

    def test_no_retry_on_success(self):
        """A call that works is made once."""
        calls = [0]

        @exponential_backoff(max_retries=3, base_delay=0)
        def post():
            calls[0] += 1
            return {"choices": []}

        assert post() == {"choices": []}
        assert calls[0] == 1

    def test_recovers_after_transient_failures(self):
        """Two timeouts followed by a reply returns the reply."""
        calls = [0]

        @exponential_backoff(max_retries=3, base_delay=0)
        def post():
            calls[0] += 1
            if calls[0] < 3:
                raise TimeoutError("read timed out")
            return "ok"

        assert post() == "ok"
        assert calls[0] == 3

    def test_gives_up_with_retry_error(self):
        """Exhausted retries raise RetryError after max_retries + 1 calls."""
        calls = [0]

        @exponential_backoff(max_retries=2, base_delay=0)
        def post():
            calls[0] += 1
            raise ConnectionError("connection refused")

        with pytest.raises(RetryError):
            post()
        assert calls[0] == 3

    def test_unlisted_exception_propagates(self):
        """Exceptions outside `exceptions` are not retried."""
        calls = [0]

        @exponential_backoff(max_retries=3, base_delay=0, exceptions=(ConnectionError,))
        def post():
            calls[0] += 1
            raise ValueError("bad reply")

        with pytest.raises(ValueError):
            post()
        assert calls[0] == 1

    def test_delays_grow_and_cap(self):
        """Delays double from base_delay and never pass max_delay."""
        delays = []

        @exponential_backoff(
            max_retries=4,
            base_delay=0.01,
            max_delay=0.03,
            on_retry=lambda attempt, exc, delay: delays.append(delay),
        )
        def post():
            raise ConnectionError("down")

        with pytest.raises(RetryError):
            post()
        assert delays == [0.01, 0.02, 0.03, 0.03]

    def test_cause_is_last_exception(self):
        """The final failure is chained as __cause__."""
        @exponential_backoff(max_retries=1, base_delay=0)
        def post():
            raise TimeoutError("slow")

        with pytest.raises(RetryError) as exc:
            post()
        assert isinstance(exc.value.__cause__, TimeoutError)
        assert "TimeoutError" in str(exc.value)

    def test_message_has_no_exception_text(self):
        """Exception text, which may echo request headers, is not copied into the message."""
        @exponential_backoff(max_retries=0, base_delay=0)
        def post():
            raise ConnectionError("Bearer sk-secret")

        with pytest.raises(RetryError) as exc:
            post()
        assert "sk-secret" not in str(exc.value)


class TestCircuitBreaker:
    """Test breaker state transitions."""

    @staticmethod
    def _down():
        raise ConnectionError("model down")

    def _trip(self, breaker, times):
        for _ in range(times):
            with pytest.raises(ConnectionError):
                breaker.call(self._down)

    def test_closed_passes_calls(self):
        """A closed breaker returns the call's result."""
        breaker = CircuitBreaker(failure_threshold=2, recovery_timeout=1)
        assert breaker.call(lambda: 42) == 42
        assert breaker.state == CircuitBreaker.CLOSED

    def test_opens_at_threshold(self):
        """Reaching the threshold opens the circuit and blocks calls."""
        breaker = CircuitBreaker(failure_threshold=3, recovery_timeout=60)
        self._trip(breaker, 3)

        assert breaker.state == CircuitBreaker.OPEN
        with pytest.raises(CircuitOpenError, match="Circuit breaker is OPEN"):
            breaker.call(lambda: "never")

    def test_success_in_half_open_closes(self):
        """A good trial call after the timeout closes the circuit."""
        breaker = CircuitBreaker(failure_threshold=2, recovery_timeout=0.1)
        self._trip(breaker, 2)

        time.sleep(0.15)
        assert breaker.call(lambda: "back") == "back"
        assert breaker.state == CircuitBreaker.CLOSED
        assert breaker.failure_count == 0

    def test_failure_in_half_open_reopens(self):
        """A failed trial call opens the circuit again immediately."""
        breaker = CircuitBreaker(failure_threshold=2, recovery_timeout=0.1)
        self._trip(breaker, 2)

        time.sleep(0.15)
        self._trip(breaker, 1)

        assert breaker.state == CircuitBreaker.OPEN
        with pytest.raises(CircuitOpenError):
            breaker.call(lambda: "never")

    def test_manual_reset(self):
        """reset() closes the circuit and clears the count."""
        breaker = CircuitBreaker(failure_threshold=1)
        self._trip(breaker, 1)

        breaker.reset()
        assert breaker.state == CircuitBreaker.CLOSED
        assert breaker.failure_count == 0


class TestTransientErrors:
    """Test transient error and status helpers."""

    @pytest.mark.parametrize("message", [
        "Read timed out",
        "Connection reset by peer",
        "503 Service Unavailable",
        "429 rate limit exceeded",
        "model overloaded",
    ])
    def test_transient(self, message):
        """Timeouts, drops, 5xx and rate limits are transient."""
        assert is_transient_error(Exception(message))

    @pytest.mark.parametrize("message", ["404 Not Found", "401 Unauthorized", "invalid JSON"])
    def test_permanent(self, message):
        """Client errors and bad payloads are not transient."""
        assert not is_transient_error(Exception(message))

    def test_retryable_statuses(self):
        """408, 429 and gateway/server errors are retried; other codes are not."""
        for code in (408, 429, 500, 502, 503, 504):
            assert should_retry_http_status(code)
        for code in (200, 400, 401, 403, 404):
            assert not should_retry_http_status(code)
