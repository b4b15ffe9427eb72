from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from celery import Celery, Task
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import SessionLocal, engine
from app.logging import setup_logging


class DBSessionTask(Task):
    """
    Celery Task base class that manages the database session lifecycle.

    Each task body runs in its own event loop, so pooled connections are
    disposed when the session scope ends rather than reused across loops.
    """

    @asynccontextmanager
    async def db_session(self) -> AsyncIterator[AsyncSession]:
        """
        Yield a session for one task execution.

        Yields:
            AsyncSession: Database session instance
        """
        try:
            async with SessionLocal() as session:
                yield session
        finally:
            await engine.dispose()


setup_logging()

# Create Celery app
celery_app = Celery(
    "fluxa_ingest",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
)

# Set the custom task class as the default
celery_app.Task = DBSessionTask

# Configure Celery
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_track_started=True,
)

# Scheduled trigger for multi-source orchestration
celery_app.conf.beat_schedule = {
    "ingest-orchestrate": {
        "task": "ingest.orchestrate",
        "schedule": settings.INGESTION_SCHEDULE_SECONDS,
    },
}

# Import tasks to ensure they are registered with Celery
# This import must be after the celery_app is created to avoid circular imports
# pylint: disable=wrong-import-position
from app.workers import tasks  # noqa
