from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.common import CursorPage


class ContentItemBase(BaseModel):
    """Base schema for ContentItem with common fields."""

    title: str = Field(description="Title as delivered by the provider")
    url: str | None = Field(default=None, description="Canonical URL of the item")
    external_id: str | None = Field(default=None, description="Provider's identifier, when it has one")
    excerpt: str | None = Field(default=None, description="Short description or lede")
    image_url: str | None = Field(default=None, description="Preview image URL")
    published_at: datetime = Field(description="Canonical (UTC, hour precision) published time")


class ContentItemCreate(ContentItemBase):
    """Schema for inserting a new ContentItem."""

    source_id: int = Field(description="Reference to the content source")
    content_hash: str = Field(description="Deduplication hash over title/source/time")
    raw_data: dict[str, Any] = Field(default_factory=dict, description="Original provider payload")


class ContentItemUpdate(BaseModel):
    """Mutable fields refreshed when an item reappears with the same external id."""

    excerpt: str | None = None
    image_url: str | None = None
    raw_data: dict[str, Any] = Field(default_factory=dict)


class ContentItemResponse(ContentItemBase):
    """Schema for ContentItem API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(description="Internal database ID")
    source_key: str = Field(description="Key of the source the item came from")
    categories: list[str] = Field(default_factory=list, description="Category names")
    created_at: datetime = Field(description="When the item was created in our system")
    updated_at: datetime = Field(description="When the item was last updated in our system")


class ContentItemCursorPage(CursorPage[ContentItemResponse]):
    """Schema for cursor-based paginated ContentItem responses."""

    pass
