"""
Ingestion schemas: runner options and results, resolved tunables and the
orchestration summary returned to cron and admin callers.
"""

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, Field


@dataclass(frozen=True)
class EffectiveConfig:
    """Tunables resolved once per invocation and passed down the call chain."""

    refresh_hours: float
    max_items_per_run: int
    daily_budget: int


class IngestionOptions(BaseModel):
    force: bool = Field(default=False, description="Bypass the cadence gate")
    fetched_at: datetime | None = Field(default=None, description="Fetch time used for hashing and cadence")


class IngestionResult(BaseModel):
    success: bool
    run_id: int | None = Field(default=None, description="None only when the source could not be loaded")
    items_fetched: int = 0
    items_created: int = 0
    items_skipped: int = 0
    items_updated: int = 0
    error: str | None = None
    skipped_reason: str | None = None


class SourceRunResult(BaseModel):
    source_key: str
    run_id: int | None
    items_fetched: int = 0
    items_created: int = 0
    items_skipped: int = 0
    items_updated: int = 0
    success: bool
    error: str | None = None
    skipped_reason: str | None = None


class OrchestrationError(BaseModel):
    source_key: str
    error: str


class OrchestrationResult(BaseModel):
    success: bool
    timestamp: datetime
    paused: bool = False
    sources_processed: int = 0
    sources_run: list[str] = Field(default_factory=list)
    sources_skipped: list[str] = Field(default_factory=list)
    results: list[SourceRunResult] = Field(default_factory=list)
    errors: list[OrchestrationError] = Field(default_factory=list)
    execution_time_ms: int = 0


@dataclass
class RunCounters:
    """Item counters accumulated while a run is in progress."""

    fetched: int = 0
    created: int = 0
    skipped: int = 0
    updated: int = 0

    def as_run_fields(self) -> dict[str, int]:
        return {
            "items_fetched": self.fetched,
            "items_created": self.created,
            "items_skipped": self.skipped,
            "items_updated": self.updated,
        }
