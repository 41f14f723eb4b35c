from __future__ import annotations

import logging
import sys

LOG_FORMAT = "[%(asctime)s] %(levelname)-5s [%(filename)s:%(lineno)d] %(message)s"
DATE_FORMAT = "%y-%m-%d %H:%M:%S"


def configure_logging(level: str = "INFO", *, database_echo: bool = False) -> None:
    """Install a single stream handler on the root logger.

    Safe to call more than once; an existing handler installed by this
    function is replaced rather than duplicated.
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_osubot_handler", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    handler._osubot_handler = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(level.upper())

    _configure_sqlalchemy_logging(database_echo)


def _configure_sqlalchemy_logging(database_echo: bool) -> None:
    """
    Silence verbose SQLAlchemy logs unless echo is explicitly enabled.

    SQLAlchemy logs under several namespaces (engine + pool). We drop them to
    WARNING by default so upsert statements and parameter dumps only show
    up when DATABASE_ECHO=true.
    """
    level = logging.INFO if database_echo else logging.WARNING
    for name in (
        "sqlalchemy",
        "sqlalchemy.engine",
        "sqlalchemy.engine.Engine",
        "sqlalchemy.pool",
        "sqlalchemy.pool.impl.AsyncAdaptedQueuePool",
    ):
        logger = logging.getLogger(name)
        logger.setLevel(level)
        logger.propagate = database_echo
