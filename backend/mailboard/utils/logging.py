"""Logging configuration for Mailboard."""

import logging
import sys
from typing import Optional

from ..config import get_config


LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def setup_logging(level_name: Optional[str] = None) -> None:
    """Configure logging from the config level (or an explicit override)."""
    level_name = (level_name or get_config().logging.level).lower()
    level = LEVELS.get(level_name, logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    logging.getLogger("uvicorn").setLevel(level)
    logging.getLogger("uvicorn.access").setLevel(level)
    # SQL echo only in debug; the driver thread chatter never
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.DEBUG if level_name == "debug" else logging.WARNING
    )
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging configured at level: {level_name}")
