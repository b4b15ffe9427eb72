from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, Integer, String, Table, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, TimestampMixin

content_item_categories = Table(
    "content_item_categories",
    Base.metadata,
    Column("content_item_id", ForeignKey("content_items.id", ondelete="CASCADE"), primary_key=True),
    Column("category_id", ForeignKey("content_categories.id", ondelete="CASCADE"), primary_key=True),
)


class Category(Base, TimestampMixin):
    __tablename__ = "content_categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)

    items = relationship("ContentItem", secondary=content_item_categories, back_populates="categories")


class ContentItem(Base, TimestampMixin):
    __tablename__ = "content_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    source_id: Mapped[int] = mapped_column(ForeignKey("content_sources.id"), nullable=False)
    external_id: Mapped[str | None] = mapped_column(String(512), nullable=True)
    content_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    excerpt: Mapped[str | None] = mapped_column(Text, nullable=True)
    published_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    image_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    raw_data: Mapped[dict] = mapped_column(JSON, default=dict)

    # Relationships
    source = relationship("ContentSource", back_populates="items")
    categories = relationship("Category", secondary=content_item_categories, back_populates="items")

    # Constraints and Indexes
    # NULL external ids never collide under the unique constraint on both backends.
    __table_args__ = (
        UniqueConstraint("content_hash", name="uq_content_items_hash"),
        UniqueConstraint("source_id", "external_id", name="uq_content_items_source_external"),
        Index("idx_content_items_published_at", "published_at"),
        Index("idx_content_items_source_published", "source_id", "published_at"),
    )
