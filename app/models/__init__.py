from app.models.base import Base, TimestampMixin
from app.models.budget import ApiUsageBudget
from app.models.config import ContentConfig
from app.models.health import SourceHealth
from app.models.ingestion import IngestionRun, RunStatus, SkipReason
from app.models.items import Category, ContentItem, content_item_categories
from app.models.source import ContentSource

__all__ = [
    "Base",
    "TimestampMixin",
    "ApiUsageBudget",
    "Category",
    "ContentConfig",
    "ContentItem",
    "ContentSource",
    "IngestionRun",
    "RunStatus",
    "SkipReason",
    "SourceHealth",
    "content_item_categories",
]
