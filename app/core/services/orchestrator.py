"""
Multi-source ingestion orchestration.

Runs every active, non-deprecated source through the ingestion runner one at
a time and aggregates the outcomes into a single summary.
"""

import time
from datetime import UTC, datetime

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.services.config import ConfigResolver
from app.core.services.ingestion import IngestionService
from app.core.services.runner import run_ingestion
from app.models.ingestion import SkipReason
from app.models.source import ContentSource
from app.schemas.ingestion import (
    IngestionOptions,
    OrchestrationError,
    OrchestrationResult,
    SourceRunResult,
)

# Retired providers that may still have active rows
DEPRECATED_SOURCE_KEYS = frozenset({"guardian", "newsapi", "mediastack"})

PREFERRED_PROVIDER = "rapidapi"
SLOW_ORCHESTRATION_SECONDS = 300


def is_preferred_provider(source_key: str, config: dict | None) -> bool:
    """RapidAPI-hosted sources are processed first."""
    if PREFERRED_PROVIDER in source_key:
        return True
    return (config or {}).get("provider") == PREFERRED_PROVIDER


def order_sources(sources: list[ContentSource]) -> list[ContentSource]:
    """Drop deprecated sources and sort preferred providers first, then by key."""
    eligible = [s for s in sources if s.source_key not in DEPRECATED_SOURCE_KEYS]
    return sorted(eligible, key=lambda s: (not is_preferred_provider(s.source_key, s.config), s.source_key))


async def orchestrate_ingestion(
    session: AsyncSession,
    force: bool = False,
    source_filter: str | None = None,
) -> OrchestrationResult:
    """
    Ingest all eligible sources sequentially.

    A failure in one source never stops the others. The overall result is
    successful when there were no errors or at least one source ran.

    Args:
        session: Database session shared by every source run
        force: Bypass the cadence gate for every source
        source_filter: Restrict the run to a single source key

    Returns:
        OrchestrationResult summary

    Raises:
        SQLAlchemyError: If the active sources cannot be loaded
    """
    started = time.monotonic()
    timestamp = datetime.now(UTC)

    if not await ConfigResolver(session).is_ingestion_enabled():
        logger.info("Ingestion is paused, skipping orchestration")
        return OrchestrationResult(success=True, timestamp=timestamp, paused=True)

    service = IngestionService(session)
    sources = await service.get_active_sources(source_filter)

    # Keys only: source rows expire whenever a runner rolls back
    source_keys = [s.source_key for s in order_sources(sources)]

    logger.bind(force=force, source_filter=source_filter).info(
        f"Starting ingestion orchestration for {len(source_keys)} sources",
    )

    result = OrchestrationResult(success=True, timestamp=timestamp, sources_processed=len(source_keys))

    for source_key in source_keys:
        try:
            outcome = await run_ingestion(session, source_key, IngestionOptions(force=force))

            result.results.append(SourceRunResult(source_key=source_key, **outcome.model_dump()))

            if outcome.skipped_reason == SkipReason.CADENCE.value:
                result.sources_skipped.append(source_key)
            elif outcome.success:
                result.sources_run.append(source_key)
            else:
                result.errors.append(
                    OrchestrationError(source_key=source_key, error=outcome.error or "Unknown error"),
                )
        except Exception as e:
            logger.opt(exception=e).error(f"Unexpected error processing {source_key}: {e}")
            result.errors.append(OrchestrationError(source_key=source_key, error=str(e) or e.__class__.__name__))

    elapsed = time.monotonic() - started
    result.execution_time_ms = int(elapsed * 1000)
    result.success = not result.errors or bool(result.sources_run)

    if elapsed > SLOW_ORCHESTRATION_SECONDS:
        logger.warning(
            f"Ingestion orchestration took {elapsed:.1f}s, over the {SLOW_ORCHESTRATION_SECONDS}s threshold",
        )

    logger.bind(
        sources_run=len(result.sources_run),
        sources_skipped=len(result.sources_skipped),
        errors=len(result.errors),
        execution_time_ms=result.execution_time_ms,
    ).info("Ingestion orchestration finished")
    return result
