"""Create or drop the chat tables for the configured database."""

from __future__ import annotations

import argparse
import asyncio
import logging

from goal_chat.core.logging import configure_logging
from goal_chat.core.settings import settings
from goal_chat.db.session import create_tables, drop_tables, engine

logger = logging.getLogger(__name__)


async def init_db(*, drop: bool = False) -> None:
    """Initialize the database by creating all tables, optionally dropping them first."""
    try:
        if drop:
            await drop_tables()
            logger.info("Dropped all tables")
        await create_tables()
    finally:
        await engine.dispose()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--drop",
        action="store_true",
        help="drop existing tables before creating them",
    )
    args = parser.parse_args(argv)

    configure_logging(settings)
    asyncio.run(init_db(drop=args.drop))
    logger.info("Database initialized at %s", settings.effective_database_url)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
