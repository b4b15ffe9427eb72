import redis.asyncio as redis

from app.config import settings


class RedisClient:
    _instance: redis.Redis | None = None

    @classmethod
    async def get_redis(cls) -> redis.Redis:
        """
        Get or create a Redis client on the Celery broker URL.
        Uses a singleton pattern to avoid creating multiple connections.
        """
        if cls._instance is None:
            if not settings.CELERY_BROKER_URL:
                raise ValueError("CELERY_BROKER_URL is not configured")

            # Broker URL format: redis://host:port/db
            cls._instance = redis.from_url(settings.CELERY_BROKER_URL, decode_responses=True)

        return cls._instance

    @classmethod
    async def close(cls) -> None:
        """Close the Redis connection if it exists."""
        if cls._instance is not None:
            await cls._instance.aclose()
            cls._instance = None
