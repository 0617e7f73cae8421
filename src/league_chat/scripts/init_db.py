# src/league_chat/scripts/init_db.py
"""Create, reset or migrate the configured chat database."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy.exc import SQLAlchemyError

from league_chat.core.settings import settings
from league_chat.db.session import create_tables, drop_tables

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[3]


def run_upgrade_head(url: str | None = None) -> None:
    """Apply every Alembic migration up to ``head``."""
    cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(PROJECT_ROOT / "migrations"))
    cfg.set_main_option("sqlalchemy.url", url or settings.database_url_sync)
    command.upgrade(cfg, "head")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Initialise the League Chat database")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--migrate",
        action="store_true",
        help="Run Alembic migrations instead of creating tables from the models.",
    )
    mode.add_argument(
        "--reset",
        action="store_true",
        help="Drop every chat table before creating them again.",
    )
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="[init_db] %(message)s")

    try:
        if args.migrate:
            run_upgrade_head()
            logger.info("Migrated %s to head", settings.database_url_sync)
            return 0
        if args.reset:
            drop_tables()
            logger.info("Dropped chat tables")
        create_tables()
        logger.info("Created chat tables in %s", settings.effective_database_url)
    except SQLAlchemyError as exc:
        logger.error("Database initialisation failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
