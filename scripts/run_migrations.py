#!/usr/bin/env python3
"""
Database migration runner for Docker containers

Usage:
    python scripts/run_migrations.py                  # upgrade to head
    python scripts/run_migrations.py create <message> # autogenerate a revision
    python scripts/run_migrations.py downgrade <rev>  # roll back to a revision
"""

import sys
from pathlib import Path

from alembic import command
from alembic.config import Config

from moviedb.config.settings import get_settings
from moviedb.database.connection import dispose_engine, wait_for_database
from moviedb.services.logger_service import get_logger

logger = get_logger("migrations")

ALEMBIC_INI = Path(__file__).resolve().parent.parent / "alembic.ini"


def _alembic_config(database_url: str) -> Config:
    alembic_cfg = Config(str(ALEMBIC_INI))
    alembic_cfg.set_main_option("script_location", str(ALEMBIC_INI.parent / "migrations"))
    alembic_cfg.set_main_option("sqlalchemy.url", database_url)
    return alembic_cfg


def run_migrations() -> None:
    """Upgrade the database to the latest revision"""
    database_url = get_settings().database_url
    logger.info("Starting database migration process")

    if not wait_for_database():
        logger.error("Database not available, cannot run migrations")
        sys.exit(1)
    dispose_engine()

    logger.info("Running database migrations")
    command.upgrade(_alembic_config(database_url), "head")
    logger.info("Database migrations completed successfully")


def create_migration(message: str) -> None:
    """Autogenerate a new revision from the ORM models"""
    logger.info("Creating new migration", message=message)
    command.revision(_alembic_config(get_settings().database_url), message=message, autogenerate=True)
    logger.info("Migration created successfully")


def downgrade(revision: str) -> None:
    logger.info("Downgrading database", revision=revision)
    command.downgrade(_alembic_config(get_settings().database_url), revision)
    logger.info("Downgrade completed", revision=revision)


def main(argv=None) -> None:
    args = sys.argv[1:] if argv is None else argv
    if not args:
        run_migrations()
    elif args[0] == "create" and len(args) > 1:
        create_migration(" ".join(args[1:]))
    elif args[0] == "downgrade" and len(args) == 2:
        downgrade(args[1])
    else:
        logger.error("Usage: run_migrations.py [create <message> | downgrade <revision>]")
        sys.exit(1)


if __name__ == "__main__":
    main()
