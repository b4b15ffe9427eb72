"""
Ingestion runner: one source, one invocation, one terminal run record.

Flow: load source -> disabled check -> resolve tunables -> cadence gate ->
create run -> adapter fetch -> budget gate -> parse -> per-item dedup/update/insert
-> complete. Every exit after the source is loaded writes a run record and a
source health rollup, and no exception escapes to the caller.
"""

from datetime import UTC, datetime

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.adapters.base import AdapterConfig, NormalizedItem
from app.core.hashing import canonical_published_time, ensure_utc, generate_content_hash
from app.core.registry import get_adapter
from app.core.services.budget import BudgetService, is_budget_gated
from app.core.services.config import ConfigResolver
from app.core.services.ingestion import IngestionService
from app.models.ingestion import SkipReason
from app.schemas.ingestion import EffectiveConfig, IngestionOptions, IngestionResult, RunCounters
from app.schemas.items import ContentItemCreate, ContentItemUpdate

SOURCE_DISABLED_MESSAGE = "Source is disabled"
BUDGET_EXCEEDED_MESSAGE = "Budget exceeded"


def _elapsed_hours(since: datetime, until: datetime) -> float:
    return (ensure_utc(until) - ensure_utc(since)).total_seconds() / 3600


async def _process_item(
    service: IngestionService,
    item: NormalizedItem,
    source_id: int,
    source_key: str,
    fetched_at: datetime,
    counters: RunCounters,
) -> None:
    """
    Dedup, update or insert one parsed item, bumping exactly one counter.

    Raises:
        ContentInsertError: If a new item cannot be inserted
    """
    canonical_time = canonical_published_time(item.published_at, fetched_at)
    content_hash = generate_content_hash(item.title, source_key, item.published_at, fetched_at)

    # Hash collisions win over external-id updates
    if await service.content_hash_exists(content_hash):
        counters.skipped += 1
        return

    if item.external_id:
        existing_id = await service.get_item_id_by_external_id(source_id, item.external_id)
        if existing_id is not None:
            updated = await service.update_item_by_external_id(
                source_id,
                item.external_id,
                ContentItemUpdate(excerpt=item.excerpt, image_url=item.image_url, raw_data=item.raw_data or {}),
            )
            # The row exists either way; a failed refresh leaves it as it was
            if updated:
                counters.updated += 1
            else:
                counters.skipped += 1
            return

    item_id = await service.insert_item(
        ContentItemCreate(
            source_id=source_id,
            external_id=item.external_id,
            content_hash=content_hash,
            title=item.title,
            url=item.source_url or None,
            excerpt=item.excerpt,
            published_at=canonical_time,
            image_url=item.image_url,
            raw_data=item.raw_data or {},
        ),
    )

    if item.categories:
        await service.link_item_categories(item_id, item.categories)

    counters.created += 1


async def run_ingestion(
    session: AsyncSession,
    source_key: str,
    options: IngestionOptions | None = None,
) -> IngestionResult:
    """
    Ingest one content source.

    Args:
        session: Database session used for every read and write of the run
        source_key: Key of the source to ingest
        options: ``force`` bypasses the cadence gate; ``fetched_at`` pins the clock

    Returns:
        IngestionResult; failures are reported in the result, never raised
    """
    options = options or IngestionOptions()
    fetched_at = ensure_utc(options.fetched_at or datetime.now(UTC))
    service = IngestionService(session)

    # 1) Load source; without it there is nothing to attach a run to
    try:
        source = await service.get_source_by_key(source_key)
    except Exception as e:
        logger.error(f"Failed to load source {source_key}: {e}")
        return IngestionResult(success=False, run_id=None, error=str(e) or "Failed to load source")
    if source is None:
        return IngestionResult(success=False, run_id=None, error="Source not found")

    # ORM instances expire on rollback, so keep plain values
    source_id = source.id

    # 2) Disabled sources get a skipped run and a failing health entry
    if not source.is_active:
        skipped_run = await service.create_skipped_run(source_id, SkipReason.DISABLED, SOURCE_DISABLED_MESSAGE)
        run_id = skipped_run.id if skipped_run else None
        await service.upsert_source_health(source_id, run_id, False, 0, SOURCE_DISABLED_MESSAGE)
        logger.bind(source_key=source_key, run_id=run_id).info(f"Source skipped (disabled): {source_key}")
        return IngestionResult(
            success=False,
            run_id=run_id,
            error=SOURCE_DISABLED_MESSAGE,
            skipped_reason=SkipReason.DISABLED.value,
        )

    counters = RunCounters()
    run_id: int | None = None

    try:
        # 3) Resolve tunables once for the whole invocation
        effective: EffectiveConfig = await ConfigResolver(session).resolve(source)
        source_config = dict(source.config or {})
        api_base_url = source.api_base_url

        # 4) Cadence gate
        if not options.force:
            try:
                last_run = await service.get_last_successful_run(source_id)
            except SQLAlchemyError as e:
                logger.warning(f"Could not read last successful run for {source_key}, treating as none: {e}")
                await session.rollback()
                last_run = None

            if last_run is not None and last_run.completed_at is not None:
                elapsed = _elapsed_hours(last_run.completed_at, fetched_at)
                if elapsed < effective.refresh_hours:
                    message = f"Skipped: cadence window ({effective.refresh_hours:g}h) not met"
                    skipped_run = await service.create_skipped_run(source_id, SkipReason.CADENCE)
                    skipped_run_id = skipped_run.id if skipped_run else None
                    # A cadence skip is healthy; clears any previous error streak
                    await service.upsert_source_health(source_id, skipped_run_id, True, 0)
                    logger.bind(
                        source_key=source_key,
                        run_id=skipped_run_id,
                        elapsed_hours=round(elapsed, 2),
                        refresh_hours=effective.refresh_hours,
                    ).info(f"Source skipped due to cadence: {source_key}")
                    return IngestionResult(
                        success=True,
                        run_id=skipped_run_id,
                        error=message,
                        skipped_reason=SkipReason.CADENCE.value,
                    )

        # 5) Create the run record
        run = await service.create_ingestion_run(source_id)
        run_id = run.id
        run_notes = {
            "force": options.force,
            "refresh_hours": effective.refresh_hours,
            "max_items_per_run": effective.max_items_per_run,
        }
    except Exception as e:
        logger.opt(exception=e).error(f"Failed to start ingestion for {source_key}: {e}")
        return IngestionResult(success=False, run_id=None, error=str(e) or "Failed to create ingestion run")

    try:
        # 6) Resolve adapter
        logger.info(f"Getting adapter for source: {source_key}")
        adapter_config = AdapterConfig(
            max_items_per_run=effective.max_items_per_run,
            base_url=api_base_url,
            config=source_config,
        )

        async with get_adapter(source_key, adapter_config) as adapter:
            # 7) Fetch
            raw = await adapter.fetch()

            # 8) Budget gate, charged per provider call
            if is_budget_gated(source_key):
                allowed = await BudgetService(session).check_and_increment(source_id, effective.daily_budget)
                if not allowed:
                    await service.skip_ingestion_run(run_id, SkipReason.BUDGET_EXCEEDED, BUDGET_EXCEEDED_MESSAGE)
                    await service.upsert_source_health(source_id, run_id, False, 0, BUDGET_EXCEEDED_MESSAGE)
                    return IngestionResult(
                        success=False,
                        run_id=run_id,
                        error=BUDGET_EXCEEDED_MESSAGE,
                        skipped_reason=SkipReason.BUDGET_EXCEEDED.value,
                    )

            # 9) Parse
            parsed = await adapter.parse(raw)

        counters.fetched = len(parsed)
        logger.info(f"Parsed {counters.fetched} items from {source_key}")

        # 10) Items, in order, truncated to the per-run ceiling
        for item in parsed[: effective.max_items_per_run]:
            await _process_item(service, item, source_id, source_key, fetched_at, counters)

        # 11) Completion
        run_notes["truncated"] = counters.fetched > effective.max_items_per_run
        await service.complete_ingestion_run(run_id, counters, run_notes)
        await service.upsert_source_health(source_id, run_id, True, counters.created)

        logger.bind(source_key=source_key, run_id=run_id, **counters.as_run_fields()).info(
            f"{source_key} ingestion completed",
        )
        return IngestionResult(
            success=True,
            run_id=run_id,
            items_fetched=counters.fetched,
            items_created=counters.created,
            items_skipped=counters.skipped,
            items_updated=counters.updated,
        )

    except Exception as e:
        # 12) Failure: keep partial counters on the run
        error_message = str(e) or e.__class__.__name__
        logger.opt(exception=e).error(f"{source_key} ingestion failed: {error_message}")
        await service.fail_ingestion_run(run_id, error_message, counters, run_notes)
        await service.upsert_source_health(source_id, run_id, False, counters.created, error_message)
        return IngestionResult(
            success=False,
            run_id=run_id,
            items_fetched=counters.fetched,
            items_created=counters.created,
            items_skipped=counters.skipped,
            items_updated=counters.updated,
            error=error_message,
        )
