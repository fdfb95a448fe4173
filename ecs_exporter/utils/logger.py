"""Structured JSON logging configuration."""

import logging
import sys
from pythonjsonlogger import jsonlogger


PLAIN_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Libraries that log every request or job run at INFO
NOISY_LOGGERS = ("boto3", "botocore", "urllib3", "aiohttp.access", "apscheduler")


def setup_logger(
    name: str = "ecs_exporter",
    level: str = "INFO",
    json_format: bool = True
) -> logging.Logger:
    """
    Configure structured JSON logging.

    Args:
        name: Logger name
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL); anything
            else falls back to INFO
        json_format: Emit JSON records; plain text when False

    Returns:
        logging.Logger: Configured logger instance
    """
    logger = logging.getLogger(name)
    level = level.upper()
    logger.setLevel(level if level in LOG_LEVELS else logging.INFO)

    # Remove existing handlers to avoid duplicates
    logger.handlers = []

    handler = logging.StreamHandler(sys.stdout)
    if json_format:
        formatter = jsonlogger.JsonFormatter(
            '%(asctime)s %(name)s %(levelname)s %(message)s',
            timestamp=True
        )
    else:
        formatter = logging.Formatter(PLAIN_FORMAT)
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    # Don't propagate to root logger
    logger.propagate = False

    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return logger
