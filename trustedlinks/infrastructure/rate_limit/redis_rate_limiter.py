import logging

import redis

from ...application.ports.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


class RedisRateLimiter(RateLimiter):
    """Fixed-window counter shared by every worker."""

    def __init__(self, client: "redis.Redis", prefix: str = "otp_rate:") -> None:
        self.client = client
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "RedisRateLimiter":
        return cls(redis.Redis.from_url(url), **kwargs)

    def allow(self, key: str, max_requests: int, window_seconds: int) -> bool:
        rk = f"{self.prefix}{key}"
        try:
            pipe = self.client.pipeline()
            pipe.incr(rk, 1)
            # Only the first hit in a window sets the expiry
            pipe.expire(rk, window_seconds, nx=True)
            count, _ = pipe.execute()
        except redis.RedisError as e:
            # Fail open while Redis is down
            logger.error(f"Redis rate limit error, allowing request: {e}")
            return True
        return int(count) <= int(max_requests)
