"""
Schemas for the operator endpoints: budgets, runtime config, the ingestion
pause switch and manual refreshes.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.ingestion import IngestionResult


class BudgetStatus(BaseModel):
    """Today's call budget for one source."""

    source_id: int
    source_key: str
    source_name: str
    budget_gated: bool = Field(description="Whether ingestion is charged against this budget")
    daily_limit: int = Field(description="Effective ceiling for the current UTC day")
    usage_count: int = Field(description="Calls consumed so far today")
    remaining: int
    period_start: datetime
    period_end: datetime


class BudgetsResponse(BaseModel):
    budgets: list[BudgetStatus]
    period_start: datetime
    period_end: datetime


class BudgetUpdate(BaseModel):
    source_key: str = Field(min_length=1)
    daily_limit: int = Field(ge=0, description="Maximum provider calls per UTC day")


class ConfigEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    config_key: str
    config_value: Any
    description: str | None = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class ConfigUpdate(BaseModel):
    key: str = Field(min_length=1, description="Config key, e.g. 'ingestion.max_items_per_run'")
    value: Any = Field(description="JSON value; known keys are type-checked")
    description: str | None = None


class IngestionStateResponse(BaseModel):
    ingestion_enabled: bool
    changed: bool
    message: str


class ForceRefreshResponse(IngestionResult):
    source_key: str
