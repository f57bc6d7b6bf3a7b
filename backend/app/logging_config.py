"""
Process-wide logging setup shared by the server and the backfill command.

Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s on stdout, which
containers capture. Chatty third-party loggers are raised to WARNING.
"""

import logging
import sys


def setup_logging(level: str) -> None:
    """Configure the root logger; replaces any earlier configuration."""
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
