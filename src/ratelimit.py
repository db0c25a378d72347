"""Client-side throttling for Kubernetes and management API calls."""

import logging
import threading
import time
from contextlib import contextmanager
from typing import Generator

from metrics import API_THROTTLE_WAIT_SECONDS

logger = logging.getLogger(__name__)


class ApiThrottle:
    """Thread-safe throttle using a semaphore and a token bucket.

    Limits concurrent requests and keeps the request rate at
    requests_per_second on average, allowing short bursts of up to
    ``burst`` requests.
    """

    def __init__(
        self,
        max_concurrent: int = 10,
        requests_per_second: float = 20.0,
        burst: int = 30,
    ) -> None:
        """Initialize the throttle.

        Args:
            max_concurrent: Maximum number of concurrent API calls
            requests_per_second: Token refill rate; 0 disables rate limiting
            burst: Bucket capacity
        """
        self._semaphore = threading.Semaphore(max_concurrent)
        self._lock = threading.Lock()
        self._rate = requests_per_second
        self._capacity = float(max(burst, 1))
        self._tokens = self._capacity
        self._updated = time.monotonic()
        self._max_concurrent = max_concurrent
        self._burst = burst

        logger.info(
            "API throttle initialized: max_concurrent=%d, requests_per_second=%.1f, burst=%d",
            max_concurrent,
            requests_per_second,
            burst,
        )

    def _take_token(self) -> None:
        """Consume one token, sleeping until one is available."""
        if self._rate <= 0:
            return
        with self._lock:
            now = time.monotonic()
            self._tokens = min(
                self._capacity, self._tokens + (now - self._updated) * self._rate
            )
            self._updated = now
            self._tokens -= 1.0
            deficit = -self._tokens
        # Tokens are reserved under the lock; waiters sleep outside it
        if deficit > 0:
            time.sleep(deficit / self._rate)

    @contextmanager
    def acquire(self) -> Generator[None, None, None]:
        """Acquire a request slot (context manager).

        Usage:
            with throttle.acquire():
                # make API call
        """
        wait_start = time.monotonic()
        self._semaphore.acquire()
        try:
            self._take_token()

            total_wait = time.monotonic() - wait_start
            if total_wait > 0.001:  # Only record waits > 1ms
                API_THROTTLE_WAIT_SECONDS.observe(total_wait)

            yield
        finally:
            self._semaphore.release()

    def __repr__(self) -> str:
        return (
            f"ApiThrottle(max_concurrent={self._max_concurrent}, "
            f"requests_per_second={self._rate}, burst={self._burst})"
        )
