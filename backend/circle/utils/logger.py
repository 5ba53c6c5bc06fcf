# circle/utils/logger.py

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from circle.config import LOG_FILE, LOG_LEVEL

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logger(level: str = LOG_LEVEL, log_file: str | None = LOG_FILE) -> logging.Logger:
    """
    Configure the "circle" logger once: stdout, plus a rotating file
    when log_file is set. Calling it again is a no-op.
    """
    logger = logging.getLogger("circle")
    if getattr(logger, "_circle_configured", False):
        return logger

    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    formatter = logging.Formatter(LOG_FORMAT)

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file, maxBytes=10 * 1024 * 1024, backupCount=5
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger._circle_configured = True
    logger.info("Logging is set up (level=%s, file=%s)", level, log_file)
    return logger
