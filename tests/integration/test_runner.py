"""
Integration tests for run_ingestion against a real SQLite database.

Adapters are replaced by in-memory StaticAdapters registered under the
source key being ingested.
"""

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from app.core.exceptions import AdapterFetchError
from app.core.services.ingestion import IngestionService
from app.core.services.runner import run_ingestion
from app.models import Category, ContentItem, IngestionRun, RunStatus, SkipReason, SourceHealth
from app.schemas.ingestion import IngestionOptions, RunCounters

FETCHED_AT = datetime(2025, 12, 14, 10, 42, tzinfo=UTC)

ACME_ITEMS = [
    {
        "title": "Storm hits coast",
        "source_url": "https://acme.test/storm",
        "external_id": "acme-1",
        "published_at": "2025-12-14T09:10:00Z",
        "excerpt": "Heavy rain expected",
        "categories": ["news"],
    },
    {
        "title": "Markets rally on rate cut",
        "source_url": "https://acme.test/markets",
        "external_id": "acme-2",
        "published_at": "2025-12-14T08:30:00Z",
    },
    {
        "title": "Local team wins final",
        "source_url": "https://acme.test/final",
        "external_id": "acme-3",
    },
]


async def count(db_session, model, *criteria) -> int:
    stmt = select(func.count()).select_from(model)
    if criteria:
        stmt = stmt.where(*criteria)
    return (await db_session.execute(stmt)).scalar_one()


async def runs_for(db_session, source_id: int) -> list[IngestionRun]:
    result = await db_session.execute(
        select(IngestionRun).where(IngestionRun.source_id == source_id).order_by(IngestionRun.id),
    )
    return list(result.scalars().all())


async def health_for(db_session, source_id: int) -> SourceHealth:
    result = await db_session.execute(
        select(SourceHealth).where(SourceHealth.source_id == source_id).execution_options(populate_existing=True),
    )
    return result.scalar_one()


class TestRunIngestion:
    async def test_new_source_creates_all_items(self, db_session, make_source, fake_adapter):
        source = await make_source("acme-news")
        db_session.add(Category(name="news"))
        await db_session.commit()
        fake_adapter("acme-news", items=ACME_ITEMS)

        result = await run_ingestion(db_session, "acme-news", IngestionOptions(fetched_at=FETCHED_AT))

        assert result.success is True
        assert result.run_id is not None
        assert (result.items_fetched, result.items_created, result.items_skipped, result.items_updated) == (3, 3, 0, 0)
        assert result.error is None
        assert await count(db_session, ContentItem, ContentItem.source_id == source.id) == 3

        [run] = await runs_for(db_session, source.id)
        assert run.status == RunStatus.COMPLETED
        assert run.items_created == 3
        assert run.completed_at is not None

        health = await health_for(db_session, source.id)
        assert health.last_run_success is True
        assert health.items_generated_last_run == 3
        assert health.last_run_id == run.id

    async def test_items_without_published_time_use_fetch_hour(self, db_session, make_source, fake_adapter):
        source = await make_source("acme-news")
        fake_adapter("acme-news", items=ACME_ITEMS[2:])

        await run_ingestion(db_session, "acme-news", IngestionOptions(fetched_at=FETCHED_AT))

        item = (await db_session.execute(select(ContentItem).where(ContentItem.source_id == source.id))).scalar_one()
        assert item.published_at.replace(tzinfo=UTC) == datetime(2025, 12, 14, 10, tzinfo=UTC)

    async def test_unknown_source_returns_failure_without_run(self, db_session):
        result = await run_ingestion(db_session, "missing-source")

        assert result.success is False
        assert result.run_id is None
        assert result.error == "Source not found"
        assert await count(db_session, IngestionRun) == 0

    async def test_disabled_source_is_skipped_as_failure(self, db_session, make_source, fake_adapter):
        source = await make_source("acme-news", is_active=False)
        adapter_cls = fake_adapter("acme-news", items=ACME_ITEMS)

        result = await run_ingestion(db_session, "acme-news")

        assert result.success is False
        assert result.skipped_reason == SkipReason.DISABLED
        assert adapter_cls.fetch_calls == 0
        [run] = await runs_for(db_session, source.id)
        assert run.status == RunStatus.SKIPPED
        assert run.skipped_reason == SkipReason.DISABLED
        health = await health_for(db_session, source.id)
        assert health.last_run_success is False
        assert health.last_error_reason == "Source is disabled"

    async def test_cadence_skip_is_success_with_zero_counters(self, db_session, make_source, fake_adapter):
        source = await make_source("acme-news")
        adapter_cls = fake_adapter("acme-news", items=ACME_ITEMS)
        service = IngestionService(db_session)
        previous = await service.create_ingestion_run(source.id)
        await service.complete_ingestion_run(previous.id, RunCounters())

        result = await run_ingestion(db_session, "acme-news")

        assert result.success is True
        assert result.skipped_reason == SkipReason.CADENCE
        assert (result.items_fetched, result.items_created, result.items_skipped, result.items_updated) == (0, 0, 0, 0)
        assert result.error == "Skipped: cadence window (3h) not met"
        assert adapter_cls.fetch_calls == 0

        runs = await runs_for(db_session, source.id)
        assert len(runs) == 2
        assert runs[-1].status == RunStatus.SKIPPED
        assert runs[-1].skipped_reason == SkipReason.CADENCE
        assert (await health_for(db_session, source.id)).last_run_success is True

    async def test_cadence_window_elapsed_runs_again(self, db_session, make_source, fake_adapter):
        source = await make_source("acme-news", config={"default_refresh_hours": 1})
        fake_adapter("acme-news", items=ACME_ITEMS[:1])
        service = IngestionService(db_session)
        previous = await service.create_ingestion_run(source.id)
        await service.update_ingestion_run(
            previous.id,
            status=RunStatus.COMPLETED,
            completed_at=datetime.now(UTC) - timedelta(hours=2),
        )

        result = await run_ingestion(db_session, "acme-news")

        assert result.success is True
        assert result.skipped_reason is None
        assert result.items_created == 1

    async def test_force_bypasses_cadence_and_is_idempotent(self, db_session, make_source, fake_adapter):
        source = await make_source("acme-news")
        fake_adapter("acme-news", items=ACME_ITEMS)
        options = IngestionOptions(force=True, fetched_at=FETCHED_AT)

        first = await run_ingestion(db_session, "acme-news", options)
        second = await run_ingestion(db_session, "acme-news", options)

        assert first.items_created == 3
        assert second.success is True
        assert second.skipped_reason is None
        assert (second.items_created, second.items_skipped, second.items_updated) == (0, 3, 0)
        assert await count(db_session, ContentItem, ContentItem.source_id == source.id) == 3

    async def test_changed_excerpt_updates_existing_item(self, db_session, make_source, fake_adapter):
        source = await make_source("acme-news")
        original = {"title": "Storm hits coast", "external_id": "acme-1", "excerpt": "Rain expected"}
        fake_adapter("acme-news", items=[original])
        await run_ingestion(db_session, "acme-news", IngestionOptions(force=True, fetched_at=FETCHED_AT))

        # Different published hour so the hash differs; same external id
        refreshed = {**original, "published_at": "2025-12-14T14:00:00Z", "excerpt": "Flood warnings issued"}
        fake_adapter("acme-news", items=[refreshed])
        result = await run_ingestion(db_session, "acme-news", IngestionOptions(force=True, fetched_at=FETCHED_AT))

        assert (result.items_created, result.items_updated, result.items_skipped) == (0, 1, 0)
        items = (
            (
                await db_session.execute(
                    select(ContentItem)
                    .where(ContentItem.source_id == source.id, ContentItem.external_id == "acme-1")
                    .execution_options(populate_existing=True),
                )
            )
            .scalars()
            .all()
        )
        assert len(items) == 1
        assert items[0].excerpt == "Flood warnings issued"

    async def test_hash_match_wins_over_external_id_update(self, db_session, make_source, fake_adapter):
        await make_source("acme-news")
        fake_adapter("acme-news", items=[{"title": "Storm", "external_id": "acme-1", "excerpt": "v1"}])
        await run_ingestion(db_session, "acme-news", IngestionOptions(force=True, fetched_at=FETCHED_AT))

        fake_adapter("acme-news", items=[{"title": "Storm!", "external_id": "acme-1", "excerpt": "v2"}])
        result = await run_ingestion(db_session, "acme-news", IngestionOptions(force=True, fetched_at=FETCHED_AT))

        assert (result.items_skipped, result.items_updated) == (1, 0)

    async def test_counters_never_exceed_fetched(self, db_session, make_source, fake_adapter, set_config):
        source = await make_source("acme-news")
        await set_config("ingestion.max_items_per_run", 2)
        fake_adapter("acme-news", items=ACME_ITEMS)

        result = await run_ingestion(db_session, "acme-news", IngestionOptions(fetched_at=FETCHED_AT))

        assert result.items_fetched == 3
        assert result.items_created == 2
        assert result.items_created + result.items_skipped + result.items_updated <= result.items_fetched
        [run] = await runs_for(db_session, source.id)
        assert run.notes == {"force": False, "refresh_hours": 3, "max_items_per_run": 2, "truncated": True}

    async def test_adapter_error_marks_run_failed(self, db_session, make_source, fake_adapter):
        source = await make_source("acme-news")
        fake_adapter("acme-news", fetch_error=AdapterFetchError("provider returned 503", "acme-news", 503))

        result = await run_ingestion(db_session, "acme-news")

        assert result.success is False
        assert result.run_id is not None
        assert result.error == "provider returned 503"
        [run] = await runs_for(db_session, source.id)
        assert run.status == RunStatus.FAILED
        assert run.error_message == "provider returned 503"
        health = await health_for(db_session, source.id)
        assert health.last_run_success is False
        assert health.consecutive_failures == 1

    async def test_missing_adapter_marks_run_failed(self, db_session, make_source):
        source = await make_source("no-adapter-source")

        result = await run_ingestion(db_session, "no-adapter-source")

        assert result.success is False
        assert "Adapter not found" in result.error
        [run] = await runs_for(db_session, source.id)
        assert run.status == RunStatus.FAILED

    async def test_insert_failure_aborts_run_with_partial_counters(
        self, db_session, make_source, fake_adapter, monkeypatch,
    ):
        source = await make_source("acme-news")
        # Occupy the external id slot under a different hash so the insert collides
        db_session.add(
            ContentItem(
                source_id=source.id,
                external_id="acme-2",
                content_hash="f" * 64,
                title="Old",
                published_at=FETCHED_AT,
            ),
        )
        await db_session.commit()
        fake_adapter("acme-news", items=ACME_ITEMS)

        # Make the external-id lookup miss so the insert is attempted
        async def lookup_misses(self, source_id, external_id):
            return None

        monkeypatch.setattr(IngestionService, "get_item_id_by_external_id", lookup_misses)
        result = await run_ingestion(db_session, "acme-news", IngestionOptions(fetched_at=FETCHED_AT))

        assert result.success is False
        assert result.items_created == 1
        runs = await runs_for(db_session, source.id)
        assert runs[-1].status == RunStatus.FAILED
        assert runs[-1].items_created == 1

    async def test_error_message_with_braces_is_recorded(self, db_session, make_source, fake_adapter):
        source = await make_source("acme-news")
        message = "provider returned errors: {'token': 'bad'}"
        fake_adapter("acme-news", fetch_error=AdapterFetchError(message, "acme-news"))

        result = await run_ingestion(db_session, "acme-news")

        assert result.success is False
        assert result.error == message
        [run] = await runs_for(db_session, source.id)
        assert run.status == RunStatus.FAILED
        assert run.error_message == message
        health = await health_for(db_session, source.id)
        assert health.last_error_reason == message

    async def test_failed_update_keeps_run_alive(self, db_session, make_source, fake_adapter, monkeypatch):
        source = await make_source("acme-news")
        fake_adapter("acme-news", items=ACME_ITEMS[:2])
        await run_ingestion(db_session, "acme-news", IngestionOptions(force=True, fetched_at=FETCHED_AT))

        async def update_fails(self, source_id, external_id, updates):
            return False

        monkeypatch.setattr(IngestionService, "update_item_by_external_id", update_fails)
        renamed = [{**item, "title": f"{item['title']} (updated)"} for item in ACME_ITEMS[:2]]
        fake_adapter("acme-news", items=renamed)
        result = await run_ingestion(db_session, "acme-news", IngestionOptions(force=True, fetched_at=FETCHED_AT))

        assert result.success is True
        assert (result.items_created, result.items_updated, result.items_skipped) == (0, 0, 2)
        assert await count(db_session, ContentItem, ContentItem.source_id == source.id) == 2
        runs = await runs_for(db_session, source.id)
        assert runs[-1].status == RunStatus.COMPLETED

    async def test_unreadable_run_history_does_not_block_ingestion(
        self, db_session, make_source, fake_adapter, monkeypatch,
    ):
        source = await make_source("acme-news")
        fake_adapter("acme-news", items=ACME_ITEMS)

        async def history_unavailable(self, source_id):
            raise OperationalError("SELECT", {}, Exception("database is locked"))

        monkeypatch.setattr(IngestionService, "get_last_successful_run", history_unavailable)
        result = await run_ingestion(db_session, "acme-news", IngestionOptions(fetched_at=FETCHED_AT))

        assert result.success is True
        assert result.items_created == 3
        [run] = await runs_for(db_session, source.id)
        assert run.status == RunStatus.COMPLETED


class TestBudgetGate:
    async def test_budget_exceeded_regardless_of_force(self, db_session, make_source, fake_adapter, set_config):
        source = await make_source("api-sports")
        await set_config("api_sports_daily_budget", 1)
        fake_adapter("api-sports", items=ACME_ITEMS[:1])
        options = IngestionOptions(force=True)

        first = await run_ingestion(db_session, "api-sports", options)
        second = await run_ingestion(db_session, "api-sports", options)

        assert first.success is True
        assert second.success is False
        assert second.skipped_reason == SkipReason.BUDGET_EXCEEDED
        assert second.error == "Budget exceeded"

        runs = await runs_for(db_session, source.id)
        assert runs[-1].status == RunStatus.SKIPPED
        assert runs[-1].skipped_reason == SkipReason.BUDGET_EXCEEDED
        assert (await health_for(db_session, source.id)).last_run_success is False

    async def test_other_sources_are_not_charged(self, db_session, make_source, fake_adapter, set_config):
        await make_source("acme-news")
        await set_config("api_sports_daily_budget", 0)
        fake_adapter("acme-news", items=ACME_ITEMS[:1])

        result = await run_ingestion(db_session, "acme-news", IngestionOptions(force=True))

        assert result.success is True


@pytest.mark.parametrize("force", [False, True])
async def test_runner_never_raises_when_run_creation_fails(db_session, make_source, fake_adapter, monkeypatch, force):
    await make_source("acme-news")
    fake_adapter("acme-news", items=ACME_ITEMS)

    async def broken(self, source_id, started_at=None):
        raise RuntimeError("database is read-only")

    monkeypatch.setattr(IngestionService, "create_ingestion_run", broken)
    result = await run_ingestion(db_session, "acme-news", IngestionOptions(force=force))

    assert result.success is False
    assert result.run_id is None
    assert result.error == "database is read-only"
