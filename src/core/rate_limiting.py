import time
import uuid

import redis.asyncio as redis

from src.api.core.models.rate_limit import (
    ClientIdentifier,
    RateLimitResult,
)
from src.utils.logger import get_logger

logger = get_logger(__name__)


class RateLimiter:
    """Sliding-window request counter backed by a Redis sorted set per client."""

    def __init__(self, redis_client: redis.Redis):
        self.redis_client = redis_client

    async def is_allowed(
        self, client_identifier: ClientIdentifier, limit: int, window_seconds: int
    ) -> RateLimitResult:
        """Count this request against the client's window.

        Rejected requests are not kept in the window. Any Redis failure
        allows the request.
        """
        result = RateLimitResult(
            is_allowed=True,
            current_count=0,
            time_to_reset=None,
            client_identifier=client_identifier,
            limit=limit,
            window_seconds=window_seconds,
        )
        try:
            key = client_identifier.to_cache_key()
            now = int(time.time())
            member = f"req_{now}_{uuid.uuid4().hex}"

            pipe = self.redis_client.pipeline()
            pipe.zremrangebyscore(key, 0, now - window_seconds)
            pipe.zcard(key)
            pipe.zadd(key, {member: now})
            pipe.expire(key, window_seconds + 1)
            _, previous_count, _, _ = await pipe.execute()

            if previous_count < limit:
                result.current_count = previous_count + 1
                return result

            await self.redis_client.zrem(key, member)
            result.is_allowed = False
            result.current_count = previous_count
            result.time_to_reset = await self._seconds_until_slot(
                key, now, window_seconds
            )
            return result
        except Exception as e:
            logger.error(
                "Rate limiter error, failing open",
                client=str(client_identifier),
                error=str(e),
            )
            return result

    async def _seconds_until_slot(self, key: str, now: int, window_seconds: int) -> int:
        oldest = await self.redis_client.zrange(key, 0, 0, withscores=True)
        if not oldest:
            return window_seconds
        return max(0, window_seconds - (now - int(oldest[0][1])))
