"""
Redis Connection Management

Shared Redis connection for the optional session backend and the reminder
queue. Callers treat a None client as "Redis unavailable" and degrade to
in-process storage instead of failing the conversation.
"""

import logging
from typing import Optional

import redis.asyncio as redis
from redis.asyncio import Redis
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError, TimeoutError, RedisError

from app.config import settings

logger = logging.getLogger(__name__)

# Key namespace (allows several apps/versions on one Redis)
APP_PREFIX = "whatsapp:v1:"


class RedisClient:
    """
    Process-wide Redis client.

    Connects lazily, retries with exponential backoff and reports None
    while the server cannot be reached.
    """

    _client: Optional[Redis] = None
    _connected: bool = False

    @classmethod
    async def get_client(cls) -> Optional[Redis]:
        """
        Get or create Redis client.

        Returns:
            Redis client or None if connection fails
        """
        if cls._client is not None and cls._connected:
            return cls._client

        try:
            cls._client = redis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5.0,
                socket_timeout=5.0,
                retry_on_timeout=True,
                retry=Retry(ExponentialBackoff(), retries=3),
            )

            await cls._client.ping()
            cls._connected = True
            logger.info(f"Redis connected at {settings.redis_url}")
            return cls._client

        except (ConnectionError, TimeoutError, RedisError) as e:
            logger.error(f"Failed to connect to Redis: {e}")
        except Exception as e:
            logger.error(f"Unexpected error connecting to Redis: {e}")

        cls._connected = False
        cls._client = None
        return None

    @classmethod
    async def close(cls) -> None:
        """Close Redis connection."""
        if cls._client is None:
            return

        try:
            await cls._client.aclose()
        except Exception as e:
            logger.error(f"Error closing Redis connection: {e}")
        finally:
            cls._client = None
            cls._connected = False


async def get_redis() -> Optional[Redis]:
    """
    Shared Redis client, or None when Redis is unavailable.

    Usage:
        redis = await get_redis()
        if redis is None:
            # degraded mode
            ...
    """
    return await RedisClient.get_client()


async def check_redis_health() -> bool:
    """
    Check Redis connectivity for health checks.

    Returns:
        True if Redis is accessible and responding, False otherwise
    """
    try:
        client = await get_redis()
        if client is None:
            return False

        await client.ping()
        return True

    except Exception as e:
        logger.error(f"Redis health check failed: {e}")
        return False
