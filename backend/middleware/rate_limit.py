"""
In-memory rate limiting for sign-in attempts.

A single process-local dict keyed by client IP. Counts reset on restart.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import UTC, datetime, timedelta


class RateLimiter:
    """
    Sliding-window request counter.

    Tracks request timestamps per key within a time window.
    """

    def __init__(self):
        # key -> timestamps of accepted requests
        self._requests: dict[str, list[datetime]] = defaultdict(list)

    def check_rate_limit(self, key: str, max_requests: int, window_minutes: int = 60) -> bool:
        """
        Record a request for key unless it is over the limit.

        Args:
            key: Identifier to rate limit (e.g. "login:<ip>")
            max_requests: Maximum requests allowed in the window
            window_minutes: Time window in minutes (default 60)

        Returns:
            True if under the limit, False if limit exceeded
        """
        now = datetime.now(UTC)
        cutoff = now - timedelta(minutes=window_minutes)

        recent = [ts for ts in self._requests[key] if ts > cutoff]
        if len(recent) >= max_requests:
            self._requests[key] = recent
            return False

        recent.append(now)
        self._requests[key] = recent
        return True

    def cleanup_old_entries(self, max_age_hours: int = 2):
        """
        Drop entries older than the given age and forget empty keys.

        Args:
            max_age_hours: Remove entries older than this many hours
        """
        cutoff = datetime.now(UTC) - timedelta(hours=max_age_hours)
        for key in list(self._requests.keys()):
            self._requests[key] = [ts for ts in self._requests[key] if ts > cutoff]
            if not self._requests[key]:
                del self._requests[key]


# Global rate limiter instance
rate_limiter = RateLimiter()
