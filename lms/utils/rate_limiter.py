"""
Rate limiting for API endpoints
"""
import time
from collections import defaultdict, deque
from fastapi import Request, HTTPException
from typing import Deque, Dict
import logging

from lms.config import settings

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    In-memory sliding-window rate limiter, per caller

    Callers are identified by the X-User-Id header, falling back to the
    client address. Limits are per process.
    """

    def __init__(self, requests_per_minute: int = 60, requests_per_hour: int = 1000):
        self.requests_per_minute = requests_per_minute
        self.requests_per_hour = requests_per_hour

        # {client_id: timestamps of requests in the last hour, oldest first}
        self.history: Dict[str, Deque[float]] = defaultdict(deque)

    def _get_client_id(self, request: Request) -> str:
        user_id = request.headers.get("x-user-id")
        if user_id:
            return f"user:{user_id}"

        client_ip = request.client.host if request.client else "unknown"
        return f"ip:{client_ip}"

    def _reject(self, client_id: str, limit: int, window: str, retry_after: int):
        logger.warning(f"Rate limit exceeded ({window}): {client_id}")
        raise HTTPException(
            status_code=429,
            detail={
                "error": "rate_limit_exceeded",
                "message": f"Too many requests. Limit: {limit} requests per {window}",
                "retry_after": retry_after
            }
        )

    def _cleanup_old_entries(self, now: float) -> None:
        """Drop timestamps older than an hour and forget idle clients"""
        cutoff = now - 3600
        for client_id in list(self.history.keys()):
            timestamps = self.history[client_id]
            while timestamps and timestamps[0] <= cutoff:
                timestamps.popleft()
            if not timestamps:
                del self.history[client_id]

    def check_rate_limit(self, request: Request, now: float = None) -> None:
        """
        Check if request exceeds rate limits and record it

        Raises:
            HTTPException: 429 if rate limit exceeded
        """
        client_id = self._get_client_id(request)
        now = now if now is not None else time.time()

        self._cleanup_old_entries(now)
        timestamps = self.history[client_id]

        minute_requests = sum(1 for ts in timestamps if ts > now - 60)
        if minute_requests >= self.requests_per_minute:
            self._reject(client_id, self.requests_per_minute, "minute", 60)

        if len(timestamps) >= self.requests_per_hour:
            self._reject(client_id, self.requests_per_hour, "hour", 3600)

        timestamps.append(now)


# Global instance
rate_limiter = RateLimiter(
    requests_per_minute=settings.RATE_LIMIT_PER_MINUTE,
    requests_per_hour=settings.RATE_LIMIT_PER_HOUR
)
