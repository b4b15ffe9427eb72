#!/usr/bin/env python3
"""
Seed script to populate content sources, categories and ingestion config.

Reads definitions from config/sources.yaml. It's idempotent and can be run
multiple times safely: rows that already exist are skipped, not updated.
"""

import asyncio
import sys
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))
load_dotenv(dotenv_path=project_root / ".env")

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import SessionLocal, engine
from app.logging import setup_logging
from app.models import Base, Category, ContentConfig, ContentSource

CONFIG_PATH = project_root / "config" / "sources.yaml"


def load_seed_data(path: Path = CONFIG_PATH) -> dict[str, Any]:
    """Load seed definitions from the YAML configuration file."""
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found at {path}")

    with open(path) as f:
        return yaml.safe_load(f) or {}


async def seed_sources(session: AsyncSession, sources: list[dict[str, Any]]) -> int:
    added = 0
    for source_data in sources:
        existing = await session.execute(
            select(ContentSource.id).where(ContentSource.source_key == source_data["source_key"]),
        )
        if existing.scalar_one_or_none() is not None:
            logger.info(f"Source '{source_data['source_key']}' already exists, skipping")
            continue

        session.add(ContentSource(**{"is_active": True, **source_data}))
        logger.info(f"Added source: {source_data['source_key']}")
        added += 1
    return added


async def seed_categories(session: AsyncSession, names: list[str]) -> int:
    existing = set((await session.execute(select(Category.name).where(Category.name.in_(names)))).scalars())
    missing = [name for name in names if name not in existing]
    session.add_all(Category(name=name) for name in missing)
    return len(missing)


async def seed_config(session: AsyncSession, entries: list[dict[str, Any]]) -> int:
    added = 0
    for entry in entries:
        existing = await session.execute(
            select(ContentConfig.id).where(ContentConfig.config_key == entry["config_key"]),
        )
        if existing.scalar_one_or_none() is None:
            session.add(ContentConfig(**{"is_active": True, **entry}))
            added += 1
    return added


async def main() -> None:
    """Create missing tables and seed everything in one transaction."""
    setup_logging()
    data = load_seed_data()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with SessionLocal() as session:
        try:
            sources = await seed_sources(session, data.get("sources", []))
            categories = await seed_categories(session, data.get("categories", []))
            config = await seed_config(session, data.get("config", []))
            await session.commit()
        except Exception as e:
            logger.error(f"Error during seeding: {e}")
            await session.rollback()
            raise

    await engine.dispose()
    logger.info(f"Seeding completed: {sources} sources, {categories} categories, {config} config entries added")


if __name__ == "__main__":
    asyncio.run(main())
