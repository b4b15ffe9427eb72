"""
Ingestion service: persistence for sources, runs, content items and source health.

This module is the storage seam of the ingestion pipeline. Writes on the
critical path (run creation, content inserts) raise; observability writes
(skipped runs, health rollups, category links, in-place updates) log and
carry on.
"""

from datetime import UTC, datetime, timedelta
from typing import Any

from loguru import logger
from sqlalchemy import case, func, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.exceptions import ContentInsertError
from app.models.base import utcnow
from app.models.health import SourceHealth
from app.models.ingestion import IngestionRun, RunStatus, SkipReason
from app.models.items import Category, ContentItem, content_item_categories
from app.models.source import ContentSource
from app.schemas.ingestion import RunCounters
from app.schemas.items import ContentItemCreate, ContentItemUpdate

ERROR_MESSAGE_MAX_LENGTH = 1000


def _truncate(message: str | None) -> str | None:
    if message is None:
        return None
    return message[:ERROR_MESSAGE_MAX_LENGTH]


class IngestionService:
    """Service for ingestion persistence with run tracking."""

    def __init__(self, db_session: AsyncSession) -> None:
        self.db = db_session

    # Sources

    async def get_source_by_key(self, source_key: str) -> ContentSource | None:
        """
        Load a content source by its key, active or not.

        Raises:
            SQLAlchemyError: If the lookup fails
        """
        result = await self.db.execute(select(ContentSource).where(ContentSource.source_key == source_key))
        return result.scalar_one_or_none()

    async def get_active_sources(self, source_filter: str | None = None) -> list[ContentSource]:
        """
        Load all active sources ordered by key, optionally restricted to one key.

        Raises:
            SQLAlchemyError: If the query fails
        """
        stmt = select(ContentSource).where(ContentSource.is_active.is_(True)).order_by(ContentSource.source_key)
        if source_filter:
            stmt = stmt.where(ContentSource.source_key == source_filter)

        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    # Runs

    async def create_ingestion_run(self, source_id: int, started_at: datetime | None = None) -> IngestionRun:
        """
        Create a run record and move it from pending to running.

        Args:
            source_id: ID of the source being ingested
            started_at: When the run started (defaults to now)

        Returns:
            Created IngestionRun instance in the running state

        Raises:
            SQLAlchemyError: If database operation fails
        """
        if started_at is None:
            started_at = datetime.now(UTC)

        logger.info(f"Creating ingestion run for source_id={source_id}")

        try:
            ingestion_run = IngestionRun(source_id=source_id, started_at=started_at, status=RunStatus.PENDING.value)
            self.db.add(ingestion_run)
            await self.db.commit()
            await self.db.refresh(ingestion_run)

            ingestion_run.status = RunStatus.RUNNING.value
            await self.db.commit()
            await self.db.refresh(ingestion_run)

            logger.info(f"Created ingestion run with ID={ingestion_run.id}")
            return ingestion_run

        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to create ingestion run: {str(e)}")
            raise

    async def create_skipped_run(
        self,
        source_id: int,
        reason: SkipReason,
        error_message: str | None = None,
    ) -> IngestionRun | None:
        """
        Record a run that was skipped before doing any work.

        Returns:
            The skipped IngestionRun, or None if it could not be written
        """
        now = datetime.now(UTC)
        try:
            ingestion_run = IngestionRun(
                source_id=source_id,
                status=RunStatus.SKIPPED.value,
                skipped_reason=reason.value,
                error_message=_truncate(error_message),
                started_at=now,
                completed_at=now,
                items_fetched=0,
                items_created=0,
                items_skipped=0,
                items_updated=0,
            )
            self.db.add(ingestion_run)
            await self.db.commit()
            await self.db.refresh(ingestion_run)
            return ingestion_run

        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to create skipped run for source_id={source_id} (continuing anyway): {e}")
            return None

    async def update_ingestion_run(
        self,
        run_id: int,
        status: RunStatus | None = None,
        skipped_reason: SkipReason | None = None,
        error_message: str | None = None,
        counters: RunCounters | None = None,
        notes: dict[str, Any] | None = None,
        completed_at: datetime | None = None,
    ) -> IngestionRun | None:
        """
        Update an existing ingestion run.

        Args:
            run_id: ID of the ingestion run to update
            status: New status
            skipped_reason: Why the run was skipped
            error_message: Error text for failed or skipped runs
            counters: Item counters to store
            notes: Additional metadata merged into existing notes
            completed_at: Completion time (auto-set for terminal statuses)

        Returns:
            Updated IngestionRun instance or None if not found

        Raises:
            SQLAlchemyError: If database operation fails
        """
        logger.debug(f"Updating ingestion run ID={run_id}")

        try:
            result = await self.db.execute(select(IngestionRun).where(IngestionRun.id == run_id))
            ingestion_run = result.scalar_one_or_none()

            if not ingestion_run:
                logger.warning(f"Ingestion run ID={run_id} not found")
                return None

            if status is not None:
                ingestion_run.status = status.value
            if skipped_reason is not None:
                ingestion_run.skipped_reason = skipped_reason.value
            if error_message is not None:
                ingestion_run.error_message = _truncate(error_message)
            if counters is not None:
                for field, value in counters.as_run_fields().items():
                    setattr(ingestion_run, field, value)
            if notes is not None:
                ingestion_run.notes = {**(ingestion_run.notes or {}), **notes}

            if status is not None and ingestion_run.is_terminal and completed_at is None:
                completed_at = datetime.now(UTC)
            if completed_at is not None:
                ingestion_run.completed_at = completed_at

            await self.db.commit()
            await self.db.refresh(ingestion_run)

            logger.info(f"Updated ingestion run ID={run_id}, status={ingestion_run.status}")
            return ingestion_run

        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to update ingestion run ID={run_id}: {str(e)}")
            raise

    async def complete_ingestion_run(
        self,
        run_id: int,
        counters: RunCounters,
        notes: dict[str, Any] | None = None,
    ) -> IngestionRun | None:
        """Mark a run as completed with its final counters."""
        return await self.update_ingestion_run(run_id, status=RunStatus.COMPLETED, counters=counters, notes=notes)

    async def fail_ingestion_run(
        self,
        run_id: int,
        error_message: str,
        counters: RunCounters | None = None,
        notes: dict[str, Any] | None = None,
    ) -> IngestionRun | None:
        """
        Mark a run as failed, keeping whatever counters accumulated.

        Never raises; the original failure is what the caller reports.
        """
        try:
            return await self.update_ingestion_run(
                run_id,
                status=RunStatus.FAILED,
                error_message=error_message,
                counters=counters,
                notes=notes,
            )
        except SQLAlchemyError as e:
            logger.error(f"Failed to mark ingestion run {run_id} as failed: {e}")
            return None

    async def skip_ingestion_run(self, run_id: int, reason: SkipReason, error_message: str) -> IngestionRun | None:
        """Mark an already started run as skipped."""
        return await self.update_ingestion_run(
            run_id,
            status=RunStatus.SKIPPED,
            skipped_reason=reason,
            error_message=error_message,
        )

    async def get_last_successful_run(self, source_id: int) -> IngestionRun | None:
        """
        Get the most recently completed run for a source.

        Raises:
            SQLAlchemyError: If the query fails
        """
        stmt = (
            select(IngestionRun)
            .where(
                IngestionRun.source_id == source_id,
                IngestionRun.status == RunStatus.COMPLETED.value,
                IngestionRun.completed_at.is_not(None),
            )
            .order_by(IngestionRun.completed_at.desc())
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_ingestion_run(self, run_id: int) -> IngestionRun | None:
        """Load one run with its source."""
        stmt = select(IngestionRun).options(selectinload(IngestionRun.source)).where(IngestionRun.id == run_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_ingestion_runs(
        self,
        source_id: int | None = None,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[IngestionRun]:
        """
        Query ingestion runs, newest first, with optional filtering.
        """
        try:
            stmt = select(IngestionRun).order_by(IngestionRun.started_at.desc(), IngestionRun.id.desc())

            if source_id is not None:
                stmt = stmt.where(IngestionRun.source_id == source_id)
            if status is not None:
                stmt = stmt.where(IngestionRun.status == status)

            result = await self.db.execute(stmt.limit(limit).offset(offset))
            return list(result.scalars().all())

        except SQLAlchemyError as e:
            logger.error(f"Failed to query ingestion runs: {str(e)}")
            return []

    async def get_ingestion_stats(self, source_id: int | None = None, days: int = 7) -> dict[str, Any]:
        """
        Get aggregated run statistics for monitoring.

        Args:
            source_id: Optional source ID filter
            days: Number of days to look back

        Returns:
            Dictionary with aggregated statistics
        """
        cutoff_time = datetime.now(UTC) - timedelta(days=days)
        empty = {
            "total_runs": 0,
            "completed_runs": 0,
            "failed_runs": 0,
            "skipped_runs": 0,
            "success_rate": 0.0,
            "total_items_created": 0,
            "total_items_updated": 0,
            "last_successful_run": None,
        }

        try:
            stmt = select(
                func.count(IngestionRun.id).label("total_runs"),
                func.sum(case((IngestionRun.status == RunStatus.COMPLETED.value, 1), else_=0)).label("completed"),
                func.sum(case((IngestionRun.status == RunStatus.FAILED.value, 1), else_=0)).label("failed"),
                func.sum(case((IngestionRun.status == RunStatus.SKIPPED.value, 1), else_=0)).label("skipped"),
                func.sum(IngestionRun.items_created).label("created"),
                func.sum(IngestionRun.items_updated).label("updated"),
            ).where(IngestionRun.started_at >= cutoff_time)

            if source_id is not None:
                stmt = stmt.where(IngestionRun.source_id == source_id)

            row = (await self.db.execute(stmt)).first()
            if not row or not row.total_runs:
                return empty

            completed = row.completed or 0
            failed = row.failed or 0
            attempted = completed + failed
            last_success = None
            if source_id is not None:
                last_run = await self.get_last_successful_run(source_id)
                last_success = last_run.completed_at if last_run else None

            return {
                "total_runs": row.total_runs,
                "completed_runs": completed,
                "failed_runs": failed,
                "skipped_runs": row.skipped or 0,
                "success_rate": (completed / attempted * 100) if attempted else 0.0,
                "total_items_created": row.created or 0,
                "total_items_updated": row.updated or 0,
                "last_successful_run": last_success,
            }

        except SQLAlchemyError as e:
            logger.error(f"Failed to get ingestion stats: {str(e)}")
            return empty

    # Content items

    async def content_hash_exists(self, content_hash: str) -> bool:
        """
        Check whether an item with this content hash is already stored.

        Raises:
            SQLAlchemyError: If the lookup fails
        """
        stmt = select(ContentItem.id).where(ContentItem.content_hash == content_hash).limit(1)
        return (await self.db.execute(stmt)).scalar_one_or_none() is not None

    async def get_item_id_by_external_id(self, source_id: int, external_id: str) -> int | None:
        """
        Find the item a source previously stored under ``external_id``.

        Raises:
            SQLAlchemyError: If the lookup fails
        """
        stmt = (
            select(ContentItem.id)
            .where(ContentItem.source_id == source_id, ContentItem.external_id == external_id)
            .limit(1)
        )
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def update_item_by_external_id(self, source_id: int, external_id: str, updates: ContentItemUpdate) -> bool:
        """
        Refresh the mutable fields of an existing item in place.

        Returns:
            True if a row was updated, False otherwise (errors are logged)
        """
        stmt = (
            update(ContentItem)
            .where(ContentItem.source_id == source_id, ContentItem.external_id == external_id)
            .values(
                excerpt=updates.excerpt,
                image_url=updates.image_url,
                raw_data=updates.raw_data,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.db.execute(stmt)
            await self.db.commit()
            return (result.rowcount or 0) > 0
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.warning(f"Failed to update item external_id={external_id} for source_id={source_id}: {e}")
            return False

    async def insert_item(self, item: ContentItemCreate) -> int:
        """
        Insert a new content item.

        Returns:
            ID of the inserted row

        Raises:
            ContentInsertError: If the insert fails for any database reason
        """
        try:
            content_item = ContentItem(**item.model_dump())
            self.db.add(content_item)
            await self.db.commit()
            await self.db.refresh(content_item)
            return content_item.id

        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to insert content item '{item.title}': {e}")
            raise ContentInsertError(f"Failed to insert content item: {e}") from e

    async def get_category_ids(self, names: list[str]) -> list[int]:
        """Resolve category names to IDs; unknown names are ignored."""
        if not names:
            return []
        result = await self.db.execute(select(Category.id).where(Category.name.in_(names)))
        return list(result.scalars().all())

    async def link_item_categories(self, item_id: int, category_names: list[str]) -> int:
        """
        Associate an item with the named categories.

        Returns:
            Number of associations written (0 on failure, which is logged)
        """
        try:
            category_ids = await self.get_category_ids(category_names)
            if not category_ids:
                return 0

            rows = [{"content_item_id": item_id, "category_id": category_id} for category_id in category_ids]
            await self.db.execute(insert(content_item_categories), rows)
            await self.db.commit()
            return len(rows)

        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.warning(f"Failed to link categories {category_names} to item {item_id}: {e}")
            return 0

    # Source health

    async def upsert_source_health(
        self,
        source_id: int,
        run_id: int | None,
        success: bool,
        items_created: int,
        error_reason: str | None = None,
    ) -> None:
        """
        Overwrite the latest-run rollup for a source.

        Success resets ``consecutive_failures``; failure increments it and
        records the reason. Health tracking is non-critical and never raises.
        """
        now = datetime.now(UTC)
        try:
            result = await self.db.execute(select(SourceHealth).where(SourceHealth.source_id == source_id))
            health = result.scalar_one_or_none()
            if health is None:
                health = SourceHealth(source_id=source_id, consecutive_failures=0)
                self.db.add(health)

            health.last_run_id = run_id
            health.last_run_success = success
            health.items_generated_last_run = items_created
            if success:
                health.last_success_at = now
                health.consecutive_failures = 0
            else:
                health.last_error_at = now
                health.last_error_reason = _truncate(error_reason or "Unknown error")
                health.consecutive_failures = (health.consecutive_failures or 0) + 1

            await self.db.commit()

        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to upsert source health for source_id={source_id}: {e}")

    async def get_source_health(self, source_id: int) -> SourceHealth | None:
        result = await self.db.execute(select(SourceHealth).where(SourceHealth.source_id == source_id))
        return result.scalar_one_or_none()
