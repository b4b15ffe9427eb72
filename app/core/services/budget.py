"""
Daily call budget for rate- or cost-constrained sources.
"""

from datetime import UTC, datetime, timedelta

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import utcnow
from app.models.budget import ApiUsageBudget
from app.models.source import ContentSource

BUDGET_GATED_SOURCES = frozenset({"api-sports"})


def is_budget_gated(source_key: str) -> bool:
    return source_key in BUDGET_GATED_SOURCES


def day_window(now: datetime | None = None) -> tuple[datetime, datetime]:
    """Return the [start, end) UTC day containing ``now``."""
    now = now or datetime.now(UTC)
    start = now.astimezone(UTC).replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)


class BudgetService:
    """Per-source, per-day usage counters."""

    def __init__(self, db_session: AsyncSession) -> None:
        self.db = db_session

    async def _ensure_period(self, source_id: int, ceiling: int, period_start: datetime, period_end: datetime) -> None:
        stmt = select(ApiUsageBudget.id).where(
            ApiUsageBudget.source_id == source_id,
            ApiUsageBudget.period_start == period_start,
        )
        if (await self.db.execute(stmt)).scalar_one_or_none() is not None:
            return

        try:
            self.db.add(
                ApiUsageBudget(
                    source_id=source_id,
                    period_start=period_start,
                    period_end=period_end,
                    budget_limit=ceiling,
                    usage_count=0,
                ),
            )
            await self.db.commit()
        except IntegrityError:
            # Another invocation created today's row first
            await self.db.rollback()

    async def check_and_increment(self, source_id: int, ceiling: int, now: datetime | None = None) -> bool:
        """
        Consume one unit of today's budget for a source.

        The increment is a single conditional UPDATE guarded by
        ``usage_count < ceiling``, so concurrent callers cannot overspend.

        Args:
            source_id: ID of the budget-gated source
            ceiling: Maximum calls per UTC day
            now: Clock override for tests

        Returns:
            True if a unit was consumed, False if the ceiling was reached

        Raises:
            SQLAlchemyError: If the budget table cannot be read or written
        """
        period_start, period_end = day_window(now)
        await self._ensure_period(source_id, ceiling, period_start, period_end)

        stmt = (
            update(ApiUsageBudget)
            .where(
                ApiUsageBudget.source_id == source_id,
                ApiUsageBudget.period_start == period_start,
                ApiUsageBudget.usage_count < ceiling,
            )
            .values(
                usage_count=ApiUsageBudget.usage_count + 1,
                budget_limit=ceiling,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.db.execute(stmt)
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise

        allowed = (result.rowcount or 0) > 0
        if not allowed:
            logger.warning(f"Daily budget of {ceiling} calls exhausted for source_id={source_id}")
        return allowed

    async def get_usage(self, source_id: int, now: datetime | None = None) -> int:
        """Return today's usage count for a source (0 if no row exists)."""
        period_start, _ = day_window(now)
        stmt = select(ApiUsageBudget.usage_count).where(
            ApiUsageBudget.source_id == source_id,
            ApiUsageBudget.period_start == period_start,
        )
        return (await self.db.execute(stmt)).scalar_one_or_none() or 0

    async def get_period(self, source_id: int, now: datetime | None = None) -> ApiUsageBudget | None:
        """Return today's budget row for a source, if one exists."""
        period_start, _ = day_window(now)
        stmt = select(ApiUsageBudget).where(
            ApiUsageBudget.source_id == source_id,
            ApiUsageBudget.period_start == period_start,
        ).execution_options(populate_existing=True)
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def set_daily_limit(self, source: ContentSource, limit: int, now: datetime | None = None) -> ApiUsageBudget:
        """
        Set a source's daily call ceiling.

        The limit is stored as the source's ``daily_budget`` override, which is
        what the gate enforces, and mirrored onto today's budget row.

        Raises:
            SQLAlchemyError: If the write fails
        """
        period_start, period_end = day_window(now)
        await self._ensure_period(source.id, limit, period_start, period_end)

        try:
            # Reassign so the JSON column is flagged dirty
            source.config = {**(source.config or {}), "daily_budget": limit}
            await self.db.execute(
                update(ApiUsageBudget)
                .where(ApiUsageBudget.source_id == source.id, ApiUsageBudget.period_start == period_start)
                .values(budget_limit=limit, updated_at=utcnow())
                .execution_options(synchronize_session=False),
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to set daily budget for {source.source_key}: {e}")
            raise

        logger.info(f"Daily budget for {source.source_key} set to {limit}")
        return await self.get_period(source.id, now)
