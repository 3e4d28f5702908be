"""Request throttling types.

Counters live in Redis sorted sets keyed ``rate_limit:{client_type}:{client_id}``.
"""

from enum import Enum

from pydantic import BaseModel


class RateLimitClientType(str, Enum):
    USER = "user"
    # Callers of the anonymous playground endpoint, keyed by IP
    ANONYMOUS = "anonymous"
    IP = "ip"


class ClientIdentifier(BaseModel):
    client_type: RateLimitClientType
    client_id: str | None = None

    def to_cache_key(self) -> str:
        return f"rate_limit:{self.client_type.value}:{self.client_id}"

    def __str__(self) -> str:
        return f"{self.client_type.value}:{self.client_id}"


class RateLimitResult(BaseModel):
    is_allowed: bool
    current_count: int
    time_to_reset: int | None
    client_identifier: ClientIdentifier
    limit: int
    window_seconds: int

    @property
    def retry_after(self) -> int:
        """Seconds a rejected client should wait; the full window if unknown."""
        return self.time_to_reset or self.window_seconds
