"""
Sources API endpoints.

Lists content sources with their health rollup and recent run statistics,
and lets operators enable or disable a source.
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.api.deps import get_db, get_ingestion_service
from app.core.services.ingestion import IngestionService
from app.models.source import ContentSource
from app.schemas.source import (
    IngestionRunSummary,
    SourceDetailResponse,
    SourceHealthSummary,
    SourcesResponse,
    SourceStats,
    SourceToggleResponse,
    SourceWithHealth,
)

router = APIRouter()


def determine_source_health(health: SourceHealthSummary | None) -> str:
    """Classify a source from its latest-run rollup."""
    if health is None:
        return "unknown"
    return "healthy" if health.last_run_success else "failing"


async def build_source_with_health(
    service: IngestionService,
    source: ContentSource,
    days: int = 7,
) -> SourceWithHealth:
    health = SourceHealthSummary.model_validate(source.health) if source.health else None
    stats = SourceStats(**await service.get_ingestion_stats(source.id, days=days))

    return SourceWithHealth(
        id=source.id,
        source_key=source.source_key,
        name=source.name,
        api_base_url=source.api_base_url,
        config=source.config or {},
        is_active=source.is_active,
        created_at=source.created_at,
        updated_at=source.updated_at,
        health=health,
        stats=stats,
    )


async def get_source_or_404(db: AsyncSession, source_key: str) -> ContentSource:
    result = await db.execute(
        select(ContentSource).options(selectinload(ContentSource.health)).where(ContentSource.source_key == source_key),
    )
    source = result.scalar_one_or_none()
    if source is None:
        raise HTTPException(status_code=404, detail="Source not found")
    return source


@router.get("/", response_model=SourcesResponse)
async def get_sources(
    active_only: bool = Query(False, description="Only include active sources"),
    status: str | None = Query(None, description="Filter by health status (healthy, failing, unknown)"),
    db: AsyncSession = Depends(get_db),
    service: IngestionService = Depends(get_ingestion_service),
) -> SourcesResponse:
    """
    Get all content sources with their health rollup and 7-day statistics.
    """
    query = select(ContentSource).options(selectinload(ContentSource.health)).order_by(ContentSource.source_key)
    if active_only:
        query = query.where(ContentSource.is_active.is_(True))

    sources = (await db.execute(query)).scalars().all()

    sources_with_health = []
    health_counts = {"healthy": 0, "failing": 0, "unknown": 0}

    for source in sources:
        source_with_health = await build_source_with_health(service, source)
        health = determine_source_health(source_with_health.health)
        health_counts[health] += 1

        if status is None or health == status:
            sources_with_health.append(source_with_health)

    return SourcesResponse(
        sources=sources_with_health,
        total=len(sources),
        healthy=health_counts["healthy"],
        failing=health_counts["failing"],
        unknown=health_counts["unknown"],
    )


@router.get("/{source_key}", response_model=SourceDetailResponse)
async def get_source_details(
    source_key: str,
    runs_limit: int = Query(10, ge=1, le=100, description="Number of recent runs to include"),
    db: AsyncSession = Depends(get_db),
    service: IngestionService = Depends(get_ingestion_service),
) -> SourceDetailResponse:
    """
    Get a single source with 30-day statistics and its most recent runs.
    """
    source = await get_source_or_404(db, source_key)
    source_with_health = await build_source_with_health(service, source, days=30)
    runs = await service.get_ingestion_runs(source_id=source.id, limit=runs_limit)

    return SourceDetailResponse(
        source=source_with_health,
        ingestion_runs=[IngestionRunSummary.model_validate(run) for run in runs],
    )


@router.post("/{source_key}/toggle", response_model=SourceToggleResponse)
async def toggle_source(source_key: str, db: AsyncSession = Depends(get_db)) -> SourceToggleResponse:
    """
    Flip a source's active flag. Disabled sources are recorded as skipped runs.
    """
    source = await get_source_or_404(db, source_key)
    source.is_active = not source.is_active
    await db.commit()

    logger.info(f"Source {source_key} is now {'active' if source.is_active else 'disabled'}")
    return SourceToggleResponse(source_key=source.source_key, is_active=source.is_active)
