# src/goal_chat/scripts/migrate.py
"""Apply Alembic migrations to the configured database."""
from __future__ import annotations

import argparse
from pathlib import Path

from alembic import command
from alembic.config import Config

from goal_chat.core.settings import settings

MIGRATIONS_DIR = Path(__file__).resolve().parents[3] / "migrations"


def build_config() -> Config:
    """Return an Alembic config pointed at the project's migrations folder."""
    cfg = Config()
    cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    # Alembic runs synchronously, so use the sync driver URL.
    cfg.set_main_option("sqlalchemy.url", settings.database_url_sync)
    return cfg


def run_upgrade(revision: str = "head") -> None:
    """Upgrade the schema to ``revision``."""
    command.upgrade(build_config(), revision)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("revision", nargs="?", default="head")
    args = parser.parse_args(argv)
    run_upgrade(args.revision)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
