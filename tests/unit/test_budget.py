"""
Unit tests for the daily budget counter.
"""

from datetime import UTC, datetime, timedelta

from app.core.services.budget import BUDGET_GATED_SOURCES, BudgetService, day_window, is_budget_gated

NOW = datetime(2025, 12, 14, 18, 30, tzinfo=UTC)


def test_only_api_sports_is_gated():
    assert BUDGET_GATED_SOURCES == {"api-sports"}
    assert is_budget_gated("api-sports")
    assert not is_budget_gated("tmdb")


def test_day_window_is_utc_day():
    start, end = day_window(NOW)
    assert start == datetime(2025, 12, 14, tzinfo=UTC)
    assert end - start == timedelta(days=1)


async def test_check_and_increment_until_ceiling(db_session, make_source):
    source = await make_source("api-sports")
    budget = BudgetService(db_session)

    assert await budget.check_and_increment(source.id, ceiling=2, now=NOW) is True
    assert await budget.check_and_increment(source.id, ceiling=2, now=NOW) is True
    assert await budget.check_and_increment(source.id, ceiling=2, now=NOW) is False
    assert await budget.get_usage(source.id, now=NOW) == 2


async def test_new_day_resets_counter(db_session, make_source):
    source = await make_source("api-sports")
    budget = BudgetService(db_session)

    assert await budget.check_and_increment(source.id, ceiling=1, now=NOW) is True
    assert await budget.check_and_increment(source.id, ceiling=1, now=NOW) is False

    tomorrow = NOW + timedelta(days=1)
    assert await budget.check_and_increment(source.id, ceiling=1, now=tomorrow) is True
    assert await budget.get_usage(source.id, now=tomorrow) == 1


async def test_zero_ceiling_never_allows(db_session, make_source):
    source = await make_source("api-sports")

    assert await BudgetService(db_session).check_and_increment(source.id, ceiling=0, now=NOW) is False


async def test_set_daily_limit_updates_override_and_todays_row(db_session, make_source):
    source = await make_source("api-sports", config={"max_items_per_run": 10})
    budget = BudgetService(db_session)
    assert await budget.check_and_increment(source.id, ceiling=5, now=NOW) is True

    period = await budget.set_daily_limit(source, 1, now=NOW)

    assert period.budget_limit == 1
    assert period.usage_count == 1
    assert source.config == {"max_items_per_run": 10, "daily_budget": 1}
    assert await budget.check_and_increment(source.id, ceiling=1, now=NOW) is False


async def test_set_daily_limit_creates_missing_row(db_session, make_source):
    source = await make_source("api-sports")

    period = await BudgetService(db_session).set_daily_limit(source, 7, now=NOW)

    assert period.budget_limit == 7
    assert period.usage_count == 0
