"""
Source schemas for API serialization and validation.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SourceBase(BaseModel):
    """Base source schema with common fields."""

    source_key: str = Field(..., description="Stable source key (e.g., 'tmdb', 'api-sports')")
    name: str = Field(..., description="Display name")
    api_base_url: str | None = Field(default=None, description="Base URL for the provider API")
    config: dict[str, Any] = Field(default_factory=dict, description="Source-specific configuration overrides")
    is_active: bool = Field(default=True, description="Whether the source is ingested")


class SourceHealthSummary(BaseModel):
    """Latest-run rollup for a source."""

    model_config = ConfigDict(from_attributes=True)

    last_run_id: int | None = None
    last_run_success: bool = False
    items_generated_last_run: int = 0
    last_success_at: datetime | None = None
    last_error_at: datetime | None = None
    last_error_reason: str | None = None
    consecutive_failures: int = 0


class IngestionRunSummary(BaseModel):
    """Summary of an ingestion run for source details."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    source_id: int
    status: str
    skipped_reason: str | None
    error_message: str | None
    items_fetched: int
    items_created: int
    items_skipped: int
    items_updated: int
    started_at: datetime
    completed_at: datetime | None
    duration_seconds: float | None


class IngestionRunDetail(IngestionRunSummary):
    """A single run with its source and the settings it ran with."""

    source_key: str
    in_progress: bool
    notes: dict[str, Any] = Field(default_factory=dict)


class SourceStats(BaseModel):
    """Statistics for a source."""

    total_runs: int = Field(description="Total number of ingestion runs")
    completed_runs: int = Field(description="Number of completed runs")
    failed_runs: int = Field(description="Number of failed runs")
    skipped_runs: int = Field(description="Number of skipped runs")
    success_rate: float = Field(description="Completed runs as a percentage of non-skipped runs")
    total_items_created: int = Field(description="Items created across the window")
    total_items_updated: int = Field(description="Items updated across the window")
    last_successful_run: datetime | None = Field(description="Completion time of the last successful run")


class SourceWithHealth(SourceBase):
    """Source with health rollup and statistics."""

    id: int
    created_at: datetime
    updated_at: datetime
    health: SourceHealthSummary | None = None
    stats: SourceStats | None = None


class SourcesResponse(BaseModel):
    """Response schema for sources list endpoint."""

    sources: list[SourceWithHealth]
    total: int
    healthy: int
    failing: int
    unknown: int


class SourceDetailResponse(BaseModel):
    """Response schema for individual source details."""

    source: SourceWithHealth
    ingestion_runs: list[IngestionRunSummary]


class SourceToggleResponse(BaseModel):
    source_key: str
    is_active: bool
