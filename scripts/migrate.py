"""
Apply or roll back the Alembic migrations for the ingestion tables.

Usage:
    python scripts/migrate.py upgrade
    python scripts/migrate.py downgrade --revision -1
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from alembic import command  # noqa: E402
from alembic.config import Config  # noqa: E402
from dotenv import load_dotenv  # noqa: E402

load_dotenv()


def alembic_config() -> Config:
    return Config(str(project_root / "alembic.ini"))


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Manage database migrations.")
    parser.add_argument("action", choices=["upgrade", "downgrade", "current"], help="Action to perform.")
    parser.add_argument("--revision", default=None, help="Target revision (head for upgrade, -1 for downgrade).")
    args = parser.parse_args(argv)

    cfg = alembic_config()
    if args.action == "upgrade":
        command.upgrade(cfg, args.revision or "head")
    elif args.action == "downgrade":
        command.downgrade(cfg, args.revision or "-1")
    else:
        command.current(cfg, verbose=True)
    return 0


if __name__ == "__main__":
    sys.exit(main())
