"""
Ingestion run history endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException, Query

from app.api.deps import get_ingestion_service
from app.core.services.ingestion import IngestionService
from app.models.ingestion import RunStatus
from app.schemas.source import IngestionRunDetail, IngestionRunSummary

router = APIRouter()


@router.get("/", response_model=list[IngestionRunSummary])
async def get_runs(
    source: str | None = Query(None, description="Filter by source key"),
    status: RunStatus | None = Query(None, description="Filter by run status"),
    limit: int = Query(50, ge=1, le=200, description="Maximum number of runs to return"),
    offset: int = Query(0, ge=0, description="Number of runs to skip"),
    service: IngestionService = Depends(get_ingestion_service),
) -> list[IngestionRunSummary]:
    """
    Get recent ingestion runs, newest first.
    """
    source_id = None
    if source is not None:
        content_source = await service.get_source_by_key(source)
        if content_source is None:
            raise HTTPException(status_code=404, detail="Source not found")
        source_id = content_source.id

    runs = await service.get_ingestion_runs(
        source_id=source_id,
        status=status.value if status else None,
        limit=limit,
        offset=offset,
    )
    return [IngestionRunSummary.model_validate(run) for run in runs]


@router.get("/{run_id}", response_model=IngestionRunDetail)
async def get_run(
    run_id: int,
    service: IngestionService = Depends(get_ingestion_service),
) -> IngestionRunDetail:
    """
    Get a single ingestion run, including the settings it ran with.
    """
    run = await service.get_ingestion_run(run_id)
    if run is None:
        raise HTTPException(status_code=404, detail="Run not found")

    summary = IngestionRunSummary.model_validate(run)
    return IngestionRunDetail(
        **summary.model_dump(),
        source_key=run.source.source_key,
        in_progress=run.is_running,
        notes=run.notes or {},
    )
