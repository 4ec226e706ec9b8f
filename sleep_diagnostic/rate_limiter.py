"""
Simple rate limiter for Anthropic API calls.

We enforce a minimum gap between calls to stay under the per-minute limit.
A limiter is built by whoever builds the classifier and passed in, so tests
and batch runs can share or replace it.
"""

import time
import threading


class RateLimiter:
    """Thread-safe rate limiter that enforces minimum gap between API calls."""

    def __init__(self, requests_per_minute: int = 45):
        self.min_gap = 60.0 / requests_per_minute  # seconds between calls
        self._last_call = float("-inf")
        self._lock = threading.Lock()

    def wait(self):
        """Block until it's safe to make the next API call."""
        with self._lock:
            elapsed = time.monotonic() - self._last_call
            if elapsed < self.min_gap:
                time.sleep(self.min_gap - elapsed)
            self._last_call = time.monotonic()
