from sqlalchemy import JSON, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, TimestampMixin


class ContentSource(Base, TimestampMixin):
    __tablename__ = "content_sources"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    source_key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    api_base_url: Mapped[str | None] = mapped_column(String(255), nullable=True)
    rate_limit_per_hour: Mapped[int | None] = mapped_column(Integer, nullable=True)
    config: Mapped[dict] = mapped_column(JSON, default=dict)
    is_active: Mapped[bool] = mapped_column(default=True)

    # Relationships
    items = relationship("ContentItem", back_populates="source")
    ingestion_runs = relationship("IngestionRun", back_populates="source")
    health = relationship("SourceHealth", back_populates="source", uselist=False)

    def __repr__(self) -> str:
        return f"<ContentSource(id={self.id}, source_key='{self.source_key}', is_active={self.is_active})>"
