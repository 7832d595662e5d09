"""Logging setup for the API server."""

import logging

from config import LOG_LEVEL


def setup_logging(level: str = LOG_LEVEL) -> None:
    """Configure root logging once for the process.

    Args:
        level: Log level name, e.g. "INFO" or "DEBUG".
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # SQL echo is too noisy at INFO
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
