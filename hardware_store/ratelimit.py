"""Fixed-window request limiter keyed by client IP."""

import logging
import time

from fastapi import Request

from .errors import RateLimitError

logger = logging.getLogger(__name__)

# scope -> (settings attribute for request count, settings attribute for window seconds)
SCOPES = {
    "api": ("rate_limit_requests", "rate_limit_window"),
    "auth": ("auth_rate_limit_requests", "auth_rate_limit_window"),
}


def client_ip(request: Request) -> str:
    # the peer address; uvicorn rewrites it from X-Forwarded-For only for trusted proxies
    return request.client.host if request.client else "unknown"


class RateLimiter:
    """FastAPI dependency counting requests per scope, IP and window.

    When the cache is unavailable requests pass through unchecked.
    """

    def __init__(self, scope: str, clock=time.time):
        if scope not in SCOPES:
            raise ValueError(f"unknown rate limit scope: {scope}")
        self.scope = scope
        self.clock = clock

    def __call__(self, request: Request) -> None:
        context = request.app.state.context
        limit_attr, window_attr = SCOPES[self.scope]
        limit = getattr(context.settings, limit_attr)
        window = max(getattr(context.settings, window_attr), 1)

        window_index = int(self.clock()) // window
        key = f"ratelimit:{self.scope}:{client_ip(request)}:{window_index}"
        count = context.cache.incr_window(key, window)
        if count is None:
            return
        if count > limit:
            logger.info("Rate limit exceeded for %s (%s scope)", client_ip(request), self.scope)
            raise RateLimitError(retry_after=window)
