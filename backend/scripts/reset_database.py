#!/usr/bin/env python3
"""
Database reset script for the workflow engine.

Drops every table and recreates the schema from the SQLAlchemy models.
Use this to get a clean database for local development. The target is
DATABASE_URL from the environment (or .env).
"""
import argparse
import logging
import sys

from sqlalchemy import inspect

from clinic_workflow.core.config import DATABASE_URL
from clinic_workflow.core.database import create_tables, drop_tables, engine
from clinic_workflow.core.log_config import configure_logging

logger = logging.getLogger(__name__)

EXPECTED_TABLES = ("patients", "visits", "diagnosis_entries")


def reset_database() -> bool:
    """Drop and recreate all tables. Returns True when every expected table exists."""
    logger.info(f"Resetting database at {DATABASE_URL}")
    drop_tables()
    create_tables()

    table_names = set(inspect(engine).get_table_names())
    missing = [t for t in EXPECTED_TABLES if t not in table_names]
    if missing:
        logger.error(f"Tables missing after reset: {', '.join(missing)}")
        return False

    logger.info(f"Created tables: {', '.join(sorted(table_names))}")
    return True


def main() -> None:
    parser = argparse.ArgumentParser(description="Drop and recreate the workflow database schema.")
    parser.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    args = parser.parse_args()

    configure_logging(args.log_level)

    if not args.yes:
        answer = input(f"This deletes all data in {DATABASE_URL}. Continue? [y/N] ")
        if answer.strip().lower() != "y":
            logger.info("Aborted")
            return

    if not reset_database():
        sys.exit(1)


if __name__ == "__main__":
    main()
