"""
Resolution of runtime ingestion tunables.

Global values come from the ``content_config`` table; a source's own JSON
config overrides them; anything absent or non-numeric falls back to the
hardcoded defaults below.
"""

import math
from typing import Any

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.config import ContentConfig
from app.models.source import ContentSource
from app.schemas.ingestion import EffectiveConfig

DEFAULT_REFRESH_HOURS = 3
DEFAULT_MAX_ITEMS_PER_RUN = 100
DEFAULT_API_SPORTS_DAILY_BUDGET = 1000

REFRESH_HOURS_KEY = "ingestion.refresh_hours"
MAX_ITEMS_PER_RUN_KEY = "ingestion.max_items_per_run"
DAILY_BUDGET_KEY = "api_sports_daily_budget"
INGESTION_ENABLED_KEY = "ingestion.enabled"

NUMERIC_CONFIG_KEYS = frozenset({REFRESH_HOURS_KEY, MAX_ITEMS_PER_RUN_KEY, DAILY_BUDGET_KEY})


def coerce_number(value: Any, allow_strings: bool = True) -> float | None:
    """Return ``value`` as a finite float, or None when it is not numeric."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int | float):
        number = float(value)
    elif allow_strings and isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _positive(value: float | None) -> float | None:
    return value if value is not None and value > 0 else None


def validate_config_value(config_key: str, value: Any) -> None:
    """
    Check a value against the type its key expects. Unknown keys accept anything.

    Raises:
        ValueError: If the value has the wrong type or is a negative number
    """
    if config_key == INGESTION_ENABLED_KEY and not isinstance(value, bool):
        raise ValueError(f"{config_key} must be a boolean")
    if config_key in NUMERIC_CONFIG_KEYS:
        number = coerce_number(value, allow_strings=False)
        if number is None or number < 0:
            raise ValueError(f"{config_key} must be a non-negative number")


class ConfigResolver:
    """Reads ``content_config`` entries and resolves per-source tunables."""

    def __init__(self, db_session: AsyncSession) -> None:
        self.db = db_session

    async def get_config_value(self, config_key: str) -> Any | None:
        """Return the value of an active config entry, or None."""
        try:
            stmt = select(ContentConfig.config_value).where(
                ContentConfig.config_key == config_key,
                ContentConfig.is_active.is_(True),
            )
            result = await self.db.execute(stmt)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.warning(f"Failed to read config '{config_key}', using default: {e}")
            return None

    async def get_numeric_config(self, config_key: str, fallback: float) -> float:
        value = coerce_number(await self.get_config_value(config_key))
        return value if value is not None else fallback

    async def is_ingestion_enabled(self) -> bool:
        """Global pause switch; a missing entry means ingestion is enabled."""
        value = await self.get_config_value(INGESTION_ENABLED_KEY)
        return value is not False

    async def resolve(self, source: ContentSource) -> EffectiveConfig:
        """
        Resolve the effective tunables for one source.

        Args:
            source: The content source being ingested

        Returns:
            EffectiveConfig with refresh hours, max items per run and daily budget
        """
        refresh_hours = await self.get_numeric_config(REFRESH_HOURS_KEY, DEFAULT_REFRESH_HOURS)
        max_items = _positive(await self.get_numeric_config(MAX_ITEMS_PER_RUN_KEY, DEFAULT_MAX_ITEMS_PER_RUN))
        daily_budget = await self.get_numeric_config(DAILY_BUDGET_KEY, DEFAULT_API_SPORTS_DAILY_BUDGET)

        source_config = source.config or {}
        source_refresh = coerce_number(source_config.get("default_refresh_hours"), allow_strings=False)
        source_max_items = _positive(coerce_number(source_config.get("max_items_per_run"), allow_strings=False))
        source_budget = coerce_number(source_config.get("daily_budget"), allow_strings=False)

        effective = EffectiveConfig(
            refresh_hours=source_refresh if source_refresh is not None else refresh_hours,
            max_items_per_run=int(source_max_items or max_items or DEFAULT_MAX_ITEMS_PER_RUN),
            daily_budget=int(source_budget if source_budget is not None else daily_budget),
        )
        logger.debug(f"Resolved config for {source.source_key}: {effective}")
        return effective

    async def list_entries(self, config_key: str | None = None) -> list[ContentConfig]:
        """Return config entries ordered by key, active or not."""
        stmt = select(ContentConfig).order_by(ContentConfig.config_key)
        if config_key is not None:
            stmt = stmt.where(ContentConfig.config_key == config_key)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def set_config_value(self, config_key: str, value: Any, description: str | None = None) -> ContentConfig:
        """
        Create or update a config entry and mark it active.

        Raises:
            ValueError: If the value does not fit the key
            SQLAlchemyError: If the write fails
        """
        validate_config_value(config_key, value)

        result = await self.db.execute(select(ContentConfig).where(ContentConfig.config_key == config_key))
        entry = result.scalar_one_or_none()
        old_value = entry.config_value if entry else None

        try:
            if entry is None:
                entry = ContentConfig(config_key=config_key, config_value=value, description=description, is_active=True)
                self.db.add(entry)
            else:
                entry.config_value = value
                entry.is_active = True
                if description is not None:
                    entry.description = description
            await self.db.commit()
            await self.db.refresh(entry)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to write config '{config_key}': {e}")
            raise

        logger.info(f"Config '{config_key}' changed from {old_value!r} to {value!r}")
        return entry

    async def set_ingestion_enabled(self, enabled: bool) -> bool:
        """Flip the global pause switch and return the previous state."""
        was_enabled = await self.is_ingestion_enabled()
        await self.set_config_value(INGESTION_ENABLED_KEY, enabled, "Enable or pause all content ingestion")
        return was_enabled
