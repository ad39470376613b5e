"""Logging setup for the goal-chat service."""

from __future__ import annotations

import logging

from goal_chat.core.settings import Settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(config: Settings) -> None:
    """Configure the root logger from settings.

    Uvicorn installs its own handlers, so this only adds a handler when the
    root logger has none yet.
    """
    level = logging.getLevelName(config.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level, format=LOG_FORMAT)
    root.setLevel(level)

    # SQL echo is routed through the sqlalchemy logger rather than stdout.
    if config.sql_debug:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)
