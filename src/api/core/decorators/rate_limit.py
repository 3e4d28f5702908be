from functools import wraps
from typing import Any, Callable

from fastapi import Request

import redis.asyncio as redis

from src.api.core.exceptions.base import RateLimitError
from src.api.core.messages import MessageCode
from src.api.core.models.rate_limit import (
    ClientIdentifier,
    RateLimitClientType,
)
from src.core.rate_limiting import RateLimiter
from src.utils.logger import get_client_ip, get_logger


logger = get_logger(__name__)


def create_rate_limit_key(request: Request) -> ClientIdentifier:
    """
    Create rate limit client identifier.

    Priority order:
    1. User ID
    2. Anonymous IP (for the anonymous playground endpoint)
    3. Regular IP Address (fallback)

    Args:
        request: FastAPI request object

    Returns:
        ClientIdentifier with proper typing
    """
    user = getattr(request.state, "user", None)
    if user and hasattr(user, "id"):
        return ClientIdentifier(
            client_type=RateLimitClientType.USER,
            client_id=str(user.id),
        )

    ip_address = get_client_ip(request)
    if request.method == "POST" and request.url.path.endswith("/anonymous-run"):
        return ClientIdentifier(
            client_type=RateLimitClientType.ANONYMOUS,
            client_id=ip_address,
        )

    return ClientIdentifier(
        client_type=RateLimitClientType.IP,
        client_id=ip_address,
    )


def rate_limit(
    limit: int,
    window_seconds: int,
):
    """
    Rate limiting decorator for FastAPI endpoints.

    The endpoint must accept ``request`` and ``redis_client`` parameters.
    Requests are allowed when Redis is unreachable.

    Args:
        limit: Maximum requests allowed
        window_seconds: Time window in seconds
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            # FastAPI passes endpoint parameters by name
            request = kwargs.get("request")
            redis_client = kwargs.get("redis_client")

            if not request:
                logger.error("Rate limit decorator: Request not found")
                return await func(*args, **kwargs)

            if not redis_client:
                logger.warning(
                    "Rate limit decorator: Redis client not found, skipping rate limit"
                )
                return await func(*args, **kwargs)

            await check_rate_limit(request, redis_client, limit, window_seconds)

            return await func(*args, **kwargs)

        return wrapper

    return decorator


async def check_rate_limit(
    request: Request,
    redis_client: redis.Redis,
    limit: int,
    window_seconds: int,
) -> None:
    """
    Check rate limit for endpoint.

    Raises:
        RateLimitError: When rate limit is exceeded
    """
    client_identifier = create_rate_limit_key(request)

    rate_limiter = RateLimiter(redis_client)
    result = await rate_limiter.is_allowed(client_identifier, limit, window_seconds)

    if not result.is_allowed:
        retry_after = result.retry_after
        logger.warning(
            "Rate limit exceeded",
            client=str(result.client_identifier),
            current_count=result.current_count,
            limit=result.limit,
            window_seconds=result.window_seconds,
        )

        raise RateLimitError(
            MessageCode.RATE_LIMIT_EXCEEDED,
            details={
                "limit": result.limit,
                "window_seconds": result.window_seconds,
                "current_count": result.current_count,
                "retry_after": retry_after,
                "client_type": result.client_identifier.client_type.value,
            },
            headers={
                "Retry-After": str(retry_after),
                "X-RateLimit-Limit": str(result.limit),
                "X-RateLimit-Reset": str(retry_after),
                "X-RateLimit-Window": str(result.window_seconds),
            },
        )
