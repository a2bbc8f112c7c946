"""Fixed-window rate limiting for registration attempts.

Counters live in Django's cache framework. With the default local-memory
cache they are per process and vanish on restart, which is acceptable: the
limiter dampens abuse and is not a correctness guarantee.
"""

import logging
import time

from django.core.cache import caches

from campus_events.registration.exceptions import RateLimitExceededError
from campus_events.settings import get_config

logger = logging.getLogger(__name__)


class RateLimiter:
    """Counts attempts per identity in fixed windows.

    Args:
        max_attempts: Attempts allowed per window.
        window_seconds: Window length.
        cache_alias: Django cache to keep counters in.
        prefix: Key namespace, so separate limiters do not share counters.
    """

    def __init__(
        self,
        *,
        max_attempts: int,
        window_seconds: int,
        cache_alias: str = "default",
        prefix: str = "campus_events:rl",
    ) -> None:
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self.cache_alias = cache_alias
        self.prefix = prefix

    @classmethod
    def from_config(cls, prefix: str = "campus_events:rl") -> "RateLimiter":
        """Build a limiter from ``CAMPUS_EVENTS['rate_limit']``."""
        config = get_config().rate_limit
        return cls(
            max_attempts=config.max_attempts,
            window_seconds=config.window_seconds,
            cache_alias=config.cache_alias,
            prefix=prefix,
        )

    def hit(self, identity: str) -> int:
        """Record one attempt for *identity*.

        Returns:
            The number of attempts in the current window, this one included.

        Raises:
            RateLimitExceededError: Once attempts exceed ``max_attempts``.
        """
        now = int(time.time())
        window = now // self.window_seconds
        key = f"{self.prefix}:{identity}:{window}"
        cache = caches[self.cache_alias]

        if cache.add(key, 1, timeout=self.window_seconds):
            count = 1
        else:
            try:
                count = cache.incr(key)
            except ValueError:
                # Expired between add() and incr().
                cache.set(key, 1, timeout=self.window_seconds)
                count = 1

        if count > self.max_attempts:
            retry_after = self.window_seconds - (now % self.window_seconds)
            logger.warning("Rate limit exceeded for %s (%d attempts)", identity, count)
            raise RateLimitExceededError(retry_after=retry_after)
        return count
