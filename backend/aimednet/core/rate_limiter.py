"""Redis-backed rate limiting."""

from aimednet.core.sessions import _get_redis_client


class RateLimiter:
    """Fixed-window attempt counter (no in-memory fallback)."""

    @staticmethod
    def is_rate_limited(identifier: str, max_attempts: int = 5) -> bool:
        client = _get_redis_client()
        current = int(client.get(f"ratelimit:{identifier}") or 0)
        return current >= max_attempts

    @staticmethod
    def record_attempt(identifier: str, window_seconds: int = 300) -> None:
        """Record an attempt with TTL matching the window."""
        client = _get_redis_client()
        key = f"ratelimit:{identifier}"
        client.incr(key)
        ttl = client.ttl(key)
        if ttl is None or ttl < 0:
            client.expire(key, window_seconds)
