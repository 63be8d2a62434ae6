from __future__ import annotations

import logging
import logging.handlers
import sys

from reelscript.core.config import Settings

LOGGER_NAME = "reelscript"


def setup_logging(settings: Settings) -> logging.Logger:
    """Configure the reelscript logger once per process."""
    logger = logging.getLogger(LOGGER_NAME)
    if logger.handlers:
        return logger

    logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    fmt = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(fmt)
    logger.addHandler(stream_handler)

    try:
        settings.log_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        logger.warning("log dir %s unavailable, logging to stdout only: %s", settings.log_dir, exc)
        return logger

    info_handler = logging.handlers.RotatingFileHandler(
        settings.log_dir / "reelscript.log",
        maxBytes=2_000_000,
        backupCount=5,
        encoding="utf-8",
    )
    info_handler.setLevel(logging.INFO)
    info_handler.setFormatter(fmt)

    error_handler = logging.handlers.RotatingFileHandler(
        settings.log_dir / "reelscript.error.log",
        maxBytes=2_000_000,
        backupCount=10,
        encoding="utf-8",
    )
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(fmt)

    logger.addHandler(info_handler)
    logger.addHandler(error_handler)
    return logger
