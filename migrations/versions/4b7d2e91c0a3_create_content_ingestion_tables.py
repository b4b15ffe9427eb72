"""Create content ingestion tables

Revision ID: 4b7d2e91c0a3
Revises:
Create Date: 2026-01-12 09:14:02.118305

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "4b7d2e91c0a3"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "content_sources",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("source_key", sa.String(length=100), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("api_base_url", sa.String(length=255), nullable=True),
        sa.Column("rate_limit_per_hour", sa.Integer(), nullable=True),
        sa.Column("config", sa.JSON(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("source_key"),
    )

    op.create_table(
        "ingestion_runs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("source_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("skipped_reason", sa.String(length=50), nullable=True),
        sa.Column("error_message", sa.String(length=1000), nullable=True),
        sa.Column("items_fetched", sa.Integer(), nullable=True),
        sa.Column("items_created", sa.Integer(), nullable=True),
        sa.Column("items_skipped", sa.Integer(), nullable=True),
        sa.Column("items_updated", sa.Integer(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["source_id"], ["content_sources.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_ingestion_runs_source_id_started_at_desc",
        "ingestion_runs",
        ["source_id", sa.literal_column("started_at DESC")],
        unique=False,
    )
    op.create_index(
        "ix_ingestion_runs_status_completed_at_desc",
        "ingestion_runs",
        ["status", sa.literal_column("completed_at DESC")],
        unique=False,
    )

    op.create_table(
        "content_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("source_id", sa.Integer(), nullable=False),
        sa.Column("external_id", sa.String(length=512), nullable=True),
        sa.Column("content_hash", sa.String(length=64), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("url", sa.String(length=1000), nullable=True),
        sa.Column("excerpt", sa.Text(), nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("image_url", sa.String(length=1000), nullable=True),
        sa.Column("raw_data", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["source_id"], ["content_sources.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("content_hash", name="uq_content_items_hash"),
        sa.UniqueConstraint("source_id", "external_id", name="uq_content_items_source_external"),
    )
    op.create_index("idx_content_items_published_at", "content_items", ["published_at"], unique=False)
    op.create_index(
        "idx_content_items_source_published",
        "content_items",
        ["source_id", "published_at"],
        unique=False,
    )

    op.create_table(
        "content_categories",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    op.create_table(
        "content_item_categories",
        sa.Column("content_item_id", sa.Integer(), nullable=False),
        sa.Column("category_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["content_item_id"], ["content_items.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["category_id"], ["content_categories.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("content_item_id", "category_id"),
    )

    op.create_table(
        "content_source_health",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("source_id", sa.Integer(), nullable=False),
        sa.Column("last_run_id", sa.Integer(), nullable=True),
        sa.Column("last_run_success", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("items_generated_last_run", sa.Integer(), nullable=True),
        sa.Column("last_success_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_error_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_error_reason", sa.String(length=1000), nullable=True),
        sa.Column("consecutive_failures", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["source_id"], ["content_sources.id"]),
        sa.ForeignKeyConstraint(["last_run_id"], ["ingestion_runs.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("source_id"),
    )

    op.create_table(
        "content_config",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("config_key", sa.String(length=100), nullable=False),
        sa.Column("config_value", sa.JSON(), nullable=True),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("config_key"),
    )

    op.create_table(
        "api_usage_budget",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("source_id", sa.Integer(), nullable=False),
        sa.Column("period_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("period_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("budget_limit", sa.Integer(), nullable=False),
        sa.Column("usage_count", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["source_id"], ["content_sources.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("source_id", "period_start", name="uq_budget_source_period"),
    )


def downgrade() -> None:
    op.drop_table("api_usage_budget")
    op.drop_table("content_config")
    op.drop_table("content_source_health")
    op.drop_table("content_item_categories")
    op.drop_table("content_categories")
    op.drop_index("idx_content_items_source_published", table_name="content_items")
    op.drop_index("idx_content_items_published_at", table_name="content_items")
    op.drop_table("content_items")
    op.drop_index("ix_ingestion_runs_status_completed_at_desc", table_name="ingestion_runs")
    op.drop_index("ix_ingestion_runs_source_id_started_at_desc", table_name="ingestion_runs")
    op.drop_table("ingestion_runs")
    op.drop_table("content_sources")
