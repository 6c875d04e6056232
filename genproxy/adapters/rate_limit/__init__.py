"""Rate limiting adapters.

The HTTP layer depends on ``AbstractRateLimiter`` only, so the in-process
sliding-window limiter can later be replaced by a shared store without
touching the routes.
"""

from genproxy.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from genproxy.adapters.rate_limit.sliding_window import InMemorySlidingWindowRateLimiter

__all__ = [
    "AbstractRateLimiter",
    "InMemorySlidingWindowRateLimiter",
    "RateLimitResult",
]
