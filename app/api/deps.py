import secrets
from collections.abc import AsyncGenerator

from fastapi import Depends, Header, HTTPException, Query, status
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.services.ingestion import IngestionService
from app.database import SessionLocal


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency for database session.
    Yields a database session and ensures proper cleanup.
    """
    async with SessionLocal() as session:
        yield session


def _check_shared_secret(provided: str | None, expected: str | None, setting_name: str) -> None:
    """
    Compare a caller-supplied secret with its configured value.

    The check is bypassed when the setting is empty; that is logged as a
    warning in production.

    Raises:
        HTTPException: 401 Unauthorized if the secret does not match
    """
    if not expected:
        if settings.is_production:
            logger.warning(f"{setting_name} is not configured; endpoint is unprotected")
        return

    if provided is None or not secrets.compare_digest(provided, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


async def verify_cron_secret(
    secret: str | None = Query(default=None, description="Shared secret for scheduled triggers"),
) -> None:
    """FastAPI dependency guarding the cron endpoints."""
    _check_shared_secret(secret, settings.CRON_SECRET, "CRON_SECRET")


async def verify_admin_secret(
    x_admin_secret: str | None = Header(default=None, description="Shared secret for operator endpoints"),
) -> None:
    """FastAPI dependency guarding the admin endpoints."""
    _check_shared_secret(x_admin_secret, settings.ADMIN_SECRET, "ADMIN_SECRET")


async def get_ingestion_service(db: AsyncSession = Depends(get_db)) -> IngestionService:
    """FastAPI dependency providing an IngestionService bound to the request session."""
    return IngestionService(db)
