"""
Operator endpoints.

Daily call budgets, runtime config, the global ingestion pause switch and
manual refreshes of a single source. Guarded by the ``x-admin-secret`` header.
"""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db, verify_admin_secret
from app.core.services.budget import BudgetService, day_window, is_budget_gated
from app.core.services.config import ConfigResolver
from app.core.services.runner import run_ingestion
from app.models.source import ContentSource
from app.schemas.admin import (
    BudgetStatus,
    BudgetsResponse,
    BudgetUpdate,
    ConfigEntry,
    ConfigUpdate,
    ForceRefreshResponse,
    IngestionStateResponse,
)
from app.schemas.ingestion import IngestionOptions

router = APIRouter(dependencies=[Depends(verify_admin_secret)])


async def _get_source(db: AsyncSession, source_key: str) -> ContentSource:
    result = await db.execute(select(ContentSource).where(ContentSource.source_key == source_key))
    source = result.scalar_one_or_none()
    if source is None:
        raise HTTPException(status_code=404, detail="Source not found")
    return source


async def build_budget_status(db: AsyncSession, source: ContentSource, now: datetime) -> BudgetStatus:
    effective = await ConfigResolver(db).resolve(source)
    usage = await BudgetService(db).get_usage(source.id, now)
    period_start, period_end = day_window(now)

    return BudgetStatus(
        source_id=source.id,
        source_key=source.source_key,
        source_name=source.name,
        budget_gated=is_budget_gated(source.source_key),
        daily_limit=effective.daily_budget,
        usage_count=usage,
        remaining=max(0, effective.daily_budget - usage),
        period_start=period_start,
        period_end=period_end,
    )


@router.get("/budgets", response_model=BudgetsResponse)
async def get_budgets(
    source_key: str | None = Query(None, description="Restrict to a single source"),
    db: AsyncSession = Depends(get_db),
) -> BudgetsResponse:
    """
    Get today's call budget and usage for each source.
    """
    now = datetime.now(UTC)
    if source_key is not None:
        sources = [await _get_source(db, source_key)]
    else:
        sources = list((await db.execute(select(ContentSource).order_by(ContentSource.source_key))).scalars().all())

    period_start, period_end = day_window(now)
    return BudgetsResponse(
        budgets=[await build_budget_status(db, source, now) for source in sources],
        period_start=period_start,
        period_end=period_end,
    )


@router.post("/budgets", response_model=BudgetStatus)
async def update_budget(update: BudgetUpdate, db: AsyncSession = Depends(get_db)) -> BudgetStatus:
    """
    Set a source's daily call ceiling, effective immediately.
    """
    source = await _get_source(db, update.source_key)
    now = datetime.now(UTC)
    await BudgetService(db).set_daily_limit(source, update.daily_limit, now)
    return await build_budget_status(db, source, now)


@router.get("/config", response_model=list[ConfigEntry])
async def get_config(
    key: str | None = Query(None, description="Return only this config key"),
    db: AsyncSession = Depends(get_db),
) -> list[ConfigEntry]:
    """
    List runtime config entries, active or not.
    """
    entries = await ConfigResolver(db).list_entries(key)
    if key is not None and not entries:
        raise HTTPException(status_code=404, detail="Config key not found")
    return [ConfigEntry.model_validate(entry) for entry in entries]


@router.post("/config", response_model=ConfigEntry)
async def update_config(update: ConfigUpdate, db: AsyncSession = Depends(get_db)) -> ConfigEntry:
    """
    Create or update a runtime config entry. Known keys are type-checked.
    """
    try:
        entry = await ConfigResolver(db).set_config_value(update.key, update.value, update.description)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return ConfigEntry.model_validate(entry)


async def _set_ingestion_enabled(db: AsyncSession, enabled: bool) -> IngestionStateResponse:
    was_enabled = await ConfigResolver(db).set_ingestion_enabled(enabled)
    state = "enabled" if enabled else "paused"
    changed = was_enabled != enabled
    return IngestionStateResponse(
        ingestion_enabled=enabled,
        changed=changed,
        message=f"Ingestion {state}" if changed else f"Ingestion already {state}",
    )


@router.post("/ingestion/pause", response_model=IngestionStateResponse)
async def pause_ingestion(db: AsyncSession = Depends(get_db)) -> IngestionStateResponse:
    """
    Pause all scheduled ingestion. Orchestration reports ``paused`` until resumed.
    """
    return await _set_ingestion_enabled(db, False)


@router.post("/ingestion/resume", response_model=IngestionStateResponse)
async def resume_ingestion(db: AsyncSession = Depends(get_db)) -> IngestionStateResponse:
    return await _set_ingestion_enabled(db, True)


@router.post("/sources/{source_key}/refresh", response_model=ForceRefreshResponse)
async def force_refresh(source_key: str, db: AsyncSession = Depends(get_db)) -> ForceRefreshResponse:
    """
    Ingest one source now, bypassing its refresh cadence.

    The daily budget still applies. Disabled sources are rejected rather than
    recorded as skipped runs.
    """
    source = await _get_source(db, source_key)
    if not source.is_active:
        raise HTTPException(status_code=400, detail="Source is disabled")

    logger.info(f"Manual refresh requested for {source_key}")
    result = await run_ingestion(db, source_key, IngestionOptions(force=True))
    return ForceRefreshResponse(source_key=source_key, **result.model_dump())
