"""Pydantic schemas for API request/response validation."""

from app.schemas.common import (
    CursorPage,
    HealthCheckResult,
    HealthResponse,
)
from app.schemas.ingestion import (
    EffectiveConfig,
    IngestionOptions,
    IngestionResult,
    OrchestrationError,
    OrchestrationResult,
    RunCounters,
    SourceRunResult,
)
from app.schemas.items import (
    ContentItemBase,
    ContentItemCreate,
    ContentItemCursorPage,
    ContentItemResponse,
    ContentItemUpdate,
)

__all__ = [
    # Common schemas
    "CursorPage",
    "HealthCheckResult",
    "HealthResponse",
    # Ingestion schemas
    "EffectiveConfig",
    "IngestionOptions",
    "IngestionResult",
    "OrchestrationError",
    "OrchestrationResult",
    "RunCounters",
    "SourceRunResult",
    # Item schemas
    "ContentItemBase",
    "ContentItemCreate",
    "ContentItemCursorPage",
    "ContentItemResponse",
    "ContentItemUpdate",
]
