"""
Unit tests for ConfigResolver precedence and numeric coercion.
"""

import math
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import SQLAlchemyError

from app.core.services.config import (
    DEFAULT_API_SPORTS_DAILY_BUDGET,
    DEFAULT_MAX_ITEMS_PER_RUN,
    DEFAULT_REFRESH_HOURS,
    ConfigResolver,
    coerce_number,
    validate_config_value,
)
from app.schemas.ingestion import EffectiveConfig


class TestCoerceNumber:
    @pytest.mark.parametrize(("value", "expected"), [(3, 3.0), (2.5, 2.5), ("4", 4.0), (" 6.5 ", 6.5)])
    def test_numeric_values(self, value, expected):
        assert coerce_number(value) == expected

    @pytest.mark.parametrize("value", [None, True, False, "abc", "", [], {}, math.nan, math.inf])
    def test_non_numeric_values(self, value):
        assert coerce_number(value) is None

    def test_strings_can_be_rejected(self):
        assert coerce_number("4", allow_strings=False) is None


class TestConfigResolver:
    async def test_defaults_when_nothing_configured(self, db_session, make_source):
        source = await make_source("acme-news")

        effective = await ConfigResolver(db_session).resolve(source)

        assert effective == EffectiveConfig(
            refresh_hours=DEFAULT_REFRESH_HOURS,
            max_items_per_run=DEFAULT_MAX_ITEMS_PER_RUN,
            daily_budget=DEFAULT_API_SPORTS_DAILY_BUDGET,
        )

    async def test_global_config_overrides_defaults(self, db_session, make_source, set_config):
        source = await make_source("acme-news")
        await set_config("ingestion.refresh_hours", 6)
        await set_config("ingestion.max_items_per_run", "25")
        await set_config("api_sports_daily_budget", 50)

        effective = await ConfigResolver(db_session).resolve(source)

        assert effective.refresh_hours == 6
        assert effective.max_items_per_run == 25
        assert effective.daily_budget == 50

    async def test_source_config_overrides_global(self, db_session, make_source, set_config):
        source = await make_source(
            "acme-news",
            config={"default_refresh_hours": 12, "max_items_per_run": 5, "daily_budget": 9},
        )
        await set_config("ingestion.refresh_hours", 6)
        await set_config("ingestion.max_items_per_run", 25)

        effective = await ConfigResolver(db_session).resolve(source)

        assert effective.refresh_hours == 12
        assert effective.max_items_per_run == 5
        assert effective.daily_budget == 9

    async def test_non_numeric_values_fall_back(self, db_session, make_source, set_config):
        source = await make_source("acme-news", config={"default_refresh_hours": "soon", "max_items_per_run": None})
        await set_config("ingestion.refresh_hours", "often")
        await set_config("ingestion.max_items_per_run", {"value": 10})

        effective = await ConfigResolver(db_session).resolve(source)

        assert effective.refresh_hours == DEFAULT_REFRESH_HOURS
        assert effective.max_items_per_run == DEFAULT_MAX_ITEMS_PER_RUN

    async def test_inactive_entries_are_ignored(self, db_session, make_source, set_config):
        source = await make_source("acme-news")
        await set_config("ingestion.refresh_hours", 24, is_active=False)

        effective = await ConfigResolver(db_session).resolve(source)

        assert effective.refresh_hours == DEFAULT_REFRESH_HOURS

    async def test_ingestion_enabled_flag(self, db_session, set_config):
        resolver = ConfigResolver(db_session)
        assert await resolver.is_ingestion_enabled() is True

        await set_config("ingestion.enabled", False)
        assert await resolver.is_ingestion_enabled() is False

    async def test_read_errors_fall_back_to_none(self):
        session = AsyncMock()
        session.execute.side_effect = SQLAlchemyError("boom")

        assert await ConfigResolver(session).get_config_value("ingestion.refresh_hours") is None


class TestConfigWrites:
    @pytest.mark.parametrize(
        "key,value",
        [
            ("ingestion.refresh_hours", 0),
            ("ingestion.max_items_per_run", 2.5),
            ("api_sports_daily_budget", 100),
            ("ingestion.enabled", False),
            ("feature.anything", {"nested": ["ok"]}),
        ],
    )
    def test_valid_values(self, key, value):
        validate_config_value(key, value)

    @pytest.mark.parametrize(
        "key,value",
        [
            ("ingestion.refresh_hours", -1),
            ("ingestion.max_items_per_run", "10"),
            ("api_sports_daily_budget", None),
            ("api_sports_daily_budget", False),
            ("ingestion.enabled", 0),
        ],
    )
    def test_invalid_values(self, key, value):
        with pytest.raises(ValueError, match=key):
            validate_config_value(key, value)

    async def test_set_config_value_takes_effect(self, db_session, make_source):
        source = await make_source("acme-news")
        resolver = ConfigResolver(db_session)

        entry = await resolver.set_config_value("ingestion.max_items_per_run", 5, "Per-run cap")
        assert entry.is_active is True

        await resolver.set_config_value("ingestion.max_items_per_run", 7)
        [entry] = await resolver.list_entries("ingestion.max_items_per_run")
        assert entry.config_value == 7
        assert entry.description == "Per-run cap"
        assert (await resolver.resolve(source)).max_items_per_run == 7

    async def test_set_ingestion_enabled_returns_previous_state(self, db_session):
        resolver = ConfigResolver(db_session)

        assert await resolver.set_ingestion_enabled(False) is True
        assert await resolver.is_ingestion_enabled() is False
        assert await resolver.set_ingestion_enabled(True) is False
        assert await resolver.is_ingestion_enabled() is True

    async def test_failed_write_rolls_back(self):
        session = AsyncMock()
        session.execute.return_value.scalar_one_or_none = lambda: None
        session.commit.side_effect = SQLAlchemyError("boom")
        session.add = lambda entry: None

        with pytest.raises(SQLAlchemyError):
            await ConfigResolver(session).set_config_value("ingestion.refresh_hours", 2)
        session.rollback.assert_awaited_once()
