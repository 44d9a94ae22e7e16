"""Retry with exponential backoff and a small circuit breaker for REST calls."""

import logging
import random
import threading
import time
from collections.abc import Callable
from functools import wraps
from typing import Any

import requests
from opentelemetry import trace

from .config import RetryConfig
from .errors import AdoNetworkError, AdoRateLimitError, AdoTimeoutError

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

CIRCUIT_FAILURE_THRESHOLD = 5
CIRCUIT_TIMEOUT_SECONDS = 60


def _client_error_status(exception: Exception) -> int | None:
    """Return the 4xx status (other than 429) carried by ``exception`` or its cause."""
    for candidate in (exception, getattr(exception, "original_exception", None)):
        response = getattr(candidate, "response", None)
        if response is not None and 400 <= response.status_code < 500:
            if response.status_code != 429:
                return response.status_code
    return None


class RetryManager:
    """
    Retries REST calls that fail for transient reasons.

    Rate limits honour the server's Retry-After value, network errors and
    timeouts back off exponentially, and client errors (4xx other than 429)
    are never retried. After repeated failures the circuit opens and further
    calls fail fast until it times out.

    REST calls run on worker threads, so breaker state is guarded by a lock.
    """

    def __init__(self, config: RetryConfig):
        self.config = config
        self._lock = threading.Lock()
        self._failure_count = 0
        self._circuit_open = False
        self._last_failure_time = 0.0

    def _calculate_delay(self, attempt: int, retry_after: int | None = None) -> float:
        """
        Calculate delay for next retry attempt.

        Args:
            attempt: Current attempt number (0-based)
            retry_after: Optional retry-after value from server

        Returns:
            float: Delay in seconds
        """
        if retry_after:
            base_delay = retry_after
        else:
            base_delay = min(
                self.config.initial_delay * (self.config.backoff_multiplier**attempt),
                self.config.max_delay,
            )

        if self.config.jitter:
            base_delay += random.uniform(0.1, 0.3) * base_delay

        return base_delay

    def _should_retry(self, exception: Exception, attempt: int) -> bool:
        with self._lock:
            if self._circuit_open:
                if time.time() - self._last_failure_time > CIRCUIT_TIMEOUT_SECONDS:
                    self._circuit_open = False
                    logger.info("Circuit breaker reset after timeout")
                else:
                    return False

        if attempt >= self.config.max_retries:
            return False

        if isinstance(exception, AdoRateLimitError):
            return True

        if isinstance(exception, (AdoTimeoutError, requests.exceptions.Timeout)):
            return True

        if isinstance(exception, (AdoNetworkError, requests.exceptions.RequestException)):
            return _client_error_status(exception) is None

        return False

    def _handle_failure(self):
        with self._lock:
            self._failure_count += 1
            self._last_failure_time = time.time()
            if self._failure_count >= CIRCUIT_FAILURE_THRESHOLD and not self._circuit_open:
                self._circuit_open = True
                logger.warning(f"Circuit breaker opened after {self._failure_count} failures")

    def _handle_success(self):
        with self._lock:
            if self._failure_count > 0:
                logger.info(f"Request succeeded after {self._failure_count} failures")
            self._failure_count = 0
            self._circuit_open = False

    @staticmethod
    def _normalize(exception: Exception, attempt: int) -> Exception:
        """Map raw ``requests`` failures onto the AdoError hierarchy."""
        if isinstance(exception, requests.exceptions.HTTPError) and exception.response is not None:
            status_code = exception.response.status_code
            if status_code == 429:
                retry_after = exception.response.headers.get("Retry-After")
                try:
                    retry_after = int(retry_after) if retry_after else None
                except ValueError:
                    retry_after = None
                return AdoRateLimitError(
                    f"Rate limit exceeded on attempt {attempt + 1}",
                    retry_after=retry_after,
                    context={"attempt": attempt + 1, "url": str(exception.response.url)},
                    original_exception=exception,
                )
            if 400 <= status_code < 500:
                # 4xx responses surface unchanged as HTTPError
                return exception

        if isinstance(exception, requests.exceptions.Timeout):
            return AdoTimeoutError(
                f"Request timeout on attempt {attempt + 1}",
                context={"attempt": attempt + 1},
                original_exception=exception,
            )

        if isinstance(exception, requests.exceptions.RequestException):
            return AdoNetworkError(
                f"Network error on attempt {attempt + 1}: {exception}",
                context={"attempt": attempt + 1, "error_type": type(exception).__name__},
                original_exception=exception,
            )

        return exception

    def retry_on_failure(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """
        Decorator that adds retry logic to a function.

        Args:
            func: Function to wrap with retry logic

        Returns:
            Callable: Wrapped function with retry logic
        """

        @wraps(func)
        def wrapper(*args, **kwargs):
            last_exception: Exception | None = None

            for attempt in range(self.config.max_retries + 1):
                try:
                    with tracer.start_as_current_span("retry_attempt") as span:
                        span.set_attribute("retry.attempt", attempt)
                        span.set_attribute("retry.max_retries", self.config.max_retries)

                        result = func(*args, **kwargs)

                        if attempt > 0:
                            span.set_attribute("retry.success_after_retries", True)

                        self._handle_success()
                        return result

                except Exception as e:
                    last_exception = self._normalize(e, attempt)

                    if not self._should_retry(last_exception, attempt):
                        break

                    retry_after = None
                    if isinstance(last_exception, AdoRateLimitError):
                        retry_after = last_exception.retry_after

                    delay = self._calculate_delay(attempt, retry_after)
                    logger.warning(
                        f"Attempt {attempt + 1} failed: {last_exception}. "
                        f"Retrying in {delay:.2f} seconds..."
                    )

                    with tracer.start_as_current_span("retry_delay") as span:
                        span.set_attribute("retry.delay_seconds", delay)
                        span.set_attribute("retry.attempt", attempt)
                        time.sleep(delay)

            self._handle_failure()
            logger.error(f"Request failed after {attempt + 1} attempt(s): {last_exception}")
            raise last_exception

        return wrapper
