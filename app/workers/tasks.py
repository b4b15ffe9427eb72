"""
Celery tasks for the ingestion pipeline.

``ingest.orchestrate`` is the scheduled trigger for all sources;
``ingest.source`` is the admin force-refresh for one source. Both delegate to
the same core used by the cron endpoint and the CLI.
"""

import asyncio
import concurrent.futures
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from loguru import logger

# Import core module to trigger adapter registration
import app.core  # noqa: F401
from app.core.services.orchestrator import orchestrate_ingestion
from app.core.services.runner import run_ingestion
from app.schemas.ingestion import IngestionOptions
from app.workers.celery_app import celery_app

T = TypeVar("T")


def run_async(factory: Callable[[], Awaitable[T]]) -> T:
    """Run a coroutine to completion from synchronous task code."""
    try:
        # Check if an event loop is already running in the current thread
        asyncio.get_running_loop()
    except RuntimeError:
        # If no event loop is running, we can safely start one.
        return asyncio.run(factory())

    # Otherwise run the new event loop in a separate thread
    with concurrent.futures.ThreadPoolExecutor() as executor:
        return executor.submit(lambda: asyncio.run(factory())).result()


@celery_app.task(bind=True, name="ingest.orchestrate")
def orchestrate_ingestion_task(self, force: bool = False, source: str | None = None) -> dict[str, Any]:
    """
    Run ingestion for all eligible sources.

    Args:
        force: Bypass the cadence gate
        source: Optional single source key

    Returns:
        Orchestration summary as a JSON-serializable dict
    """
    logger.info(f"Starting ingestion orchestration task (force={force}, source={source})")

    async def _run() -> dict[str, Any]:
        async with self.db_session() as session:
            result = await orchestrate_ingestion(session, force=force, source_filter=source)
            return result.model_dump(mode="json")

    try:
        result = run_async(_run)
    except Exception as e:
        logger.opt(exception=e).error(f"Ingestion orchestration task failed: {e}")
        return {"success": False, "error": str(e)}

    logger.bind(
        success=result["success"],
        sources_run=result["sources_run"],
        sources_skipped=result["sources_skipped"],
        errors=len(result["errors"]),
    ).info("Ingestion orchestration task completed")
    return result


@celery_app.task(bind=True, name="ingest.source")
def ingest_source_task(self, source_key: str, force: bool = False) -> dict[str, Any]:
    """
    Run ingestion for a single source.

    Args:
        source_key: Key of the source to ingest
        force: Bypass the cadence gate

    Returns:
        Ingestion result as a dict with run id and item counters
    """
    logger.info(f"Starting {source_key} ingestion task (force={force})")

    async def _run() -> dict[str, Any]:
        async with self.db_session() as session:
            result = await run_ingestion(session, source_key, IngestionOptions(force=force))
            return result.model_dump(mode="json")

    result = run_async(_run)

    task_logger = logger.bind(**{key: value for key, value in result.items() if key.startswith("items_")})
    if result["success"]:
        task_logger.info(f"{source_key} ingestion task completed")
    else:
        task_logger.warning(f"{source_key} ingestion task did not succeed: {result['error']}")
    return result
