#!/usr/bin/env python3
"""
Run ingestion for one content source from the command line.

Usage:
    python scripts/run_ingestion.py <source_key> [--force]

Exits with status 1 when the run does not succeed.
"""

import argparse
import asyncio
import sys
from pathlib import Path

from dotenv import load_dotenv

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))
load_dotenv(dotenv_path=project_root / ".env")

from loguru import logger

# Import core module to trigger adapter registration
import app.core  # noqa: F401
from app.core.services.runner import run_ingestion
from app.database import SessionLocal, engine
from app.logging import setup_logging
from app.schemas.ingestion import IngestionOptions, IngestionResult


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run ingestion for a single content source.")
    parser.add_argument("source_key", help="Key of the source to ingest (e.g. tmdb)")
    parser.add_argument("--force", action="store_true", help="Bypass the cadence gate")
    return parser.parse_args(argv)


async def run(source_key: str, force: bool) -> IngestionResult:
    async with SessionLocal() as session:
        result = await run_ingestion(session, source_key, IngestionOptions(force=force))
    await engine.dispose()
    return result


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging()

    result = asyncio.run(run(args.source_key, args.force))

    logger.info(
        f"{args.source_key}: success={result.success} run_id={result.run_id} "
        f"fetched={result.items_fetched} created={result.items_created} "
        f"skipped={result.items_skipped} updated={result.items_updated}",
    )
    if result.skipped_reason:
        logger.info(f"Skipped: {result.skipped_reason}")
    if result.error and not result.success:
        logger.error(f"Error: {result.error}")

    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
