"""ARQ (Async Redis Queue) configuration utilities.

Provides helpers for parsing Redis connection settings from the
application config into ARQ-compatible RedisSettings.
"""

from typing import Optional
from urllib.parse import urlparse

from arq.connections import RedisSettings
from libs.common.config import get_settings


def get_redis_settings(redis_url: Optional[str] = None) -> RedisSettings:
    """Parse REDIS_URL (or an explicit URL) into ARQ RedisSettings."""
    parsed = urlparse(redis_url or get_settings().REDIS_URL)

    return RedisSettings(
        host=parsed.hostname or "localhost",
        port=parsed.port or 6379,
        database=int(parsed.path.lstrip("/") or "0"),
        password=parsed.password,
        ssl=parsed.scheme == "rediss",
    )


# Each worker consumes only its own queue
COMMUNICATIONS_QUEUE = "arq:queue:communications"
PAYMENTS_QUEUE = "arq:queue:payments"
