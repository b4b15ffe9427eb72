from loguru import logger
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.redis import RedisClient


class SQLDatabaseHealthChecker:
    """Runs a trivial query against the configured database."""

    async def check(self, db: AsyncSession) -> tuple[str, bool]:
        try:
            await db.execute(text("SELECT 1"))
            return ("database", True)
        except SQLAlchemyError as e:
            logger.warning(f"Database health check failed: {e}")
            return ("database", False)


class RedisHealthChecker:
    """Pings the Redis instance backing the Celery broker."""

    async def check(self) -> tuple[str, bool]:
        try:
            client = await RedisClient.get_redis()
            await client.ping()
            return ("redis", True)
        except (RedisError, ValueError, OSError) as e:
            logger.warning(f"Redis health check failed: {e}")
            return ("redis", False)


async def check_database_connection(db: AsyncSession) -> bool:
    _, is_healthy = await SQLDatabaseHealthChecker().check(db)
    return is_healthy


async def check_redis_connection() -> bool:
    _, is_healthy = await RedisHealthChecker().check()
    return is_healthy
