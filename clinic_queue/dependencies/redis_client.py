from typing import Optional

from fastapi import Request
from redis.asyncio import Redis


def get_redis_client(request: Request) -> Optional[Redis]:
    """Shared client from the lifespan handler; None when Redis is not configured."""
    return getattr(request.app.state, "redis_client", None)
