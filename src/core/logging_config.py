"""Logging setup for the API process."""

import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging once and quiet noisy third-party loggers.

    Args:
        level: Log level name, e.g. "INFO" or "DEBUG".
    """
    actual_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=actual_level, format=LOG_FORMAT)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("multipart").setLevel(logging.WARNING)
