import logging
import time

import redis

from ...application.ports.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


class RedisRateLimiter(RateLimiter):
    """Fixed-window counter shared across workers."""

    def __init__(self, url: str, prefix: str = "seekers:rl:") -> None:
        self.client = redis.Redis.from_url(url)
        self.prefix = prefix

    def allow(self, key: str, max_requests: int, window_seconds: int) -> bool:
        bucket = int(time.time() // window_seconds)
        rk = f"{self.prefix}{key}:{bucket}"
        try:
            pipe = self.client.pipeline()
            pipe.incr(rk, 1)
            pipe.expire(rk, window_seconds)
            count, _ = pipe.execute()
        except redis.RedisError as e:
            # Fail open when the counter store is unreachable
            logger.error(f"Rate limiter unavailable: {e}")
            return True
        return int(count) <= int(max_requests)
