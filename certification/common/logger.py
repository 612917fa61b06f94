"""Logging for the certification service.

Log lines about one application carry its id and status. Module code wraps
its logger with ``application_logger`` when it acts on an application;
handlers installed by ``setup_logger`` render both fields, or ``-`` for
records that concern no single application.
"""

import logging
import logging.handlers
import os
from typing import List, Optional, Union
from uuid import UUID

from certification.core.config import Settings, get_settings

LOGGER_NAME = "certification"
LOG_FORMAT = (
    "%(asctime)s [%(levelname)s] [%(name)s] "
    "[%(application_id)s %(application_status)s] %(message)s"
)
ISO_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"
LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

CONTEXT_FIELDS = ("application_id", "application_status")


class ApplicationContextFilter(logging.Filter):
    """Fills the application fields on records logged without them."""

    def filter(self, record: logging.LogRecord) -> bool:
        for name in CONTEXT_FIELDS:
            if not hasattr(record, name):
                setattr(record, name, "-")
        return True


def application_logger(
    logger: logging.Logger, application_id: UUID, status: Union[str, object]
) -> logging.LoggerAdapter:
    """Wrap ``logger`` so each record names the application and its status."""
    return logging.LoggerAdapter(logger, {
        "application_id": str(application_id),
        "application_status": getattr(status, "value", status),
    })


def _build_handlers(settings: Settings, name: str) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if settings.log_to_file:
        os.makedirs(settings.log_dir, exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            os.path.join(settings.log_dir, f"{name}.log"),
            maxBytes=settings.log_max_bytes,
            backupCount=settings.log_backup_count,
        ))
    return handlers


def setup_logger(settings: Optional[Settings] = None, name: str = LOGGER_NAME) -> logging.Logger:
    """Configure the package logger from settings.

    Configuring ``certification`` covers every module logger below it. The
    console handler is always installed; the rotating file handler only
    when ``log_to_file`` is set. Calling again only updates the level.

    Raises:
        ValueError: ``log_level`` is not a standard level name
    """
    settings = settings or get_settings()
    level = settings.log_level.upper()
    if level not in LEVELS:
        raise ValueError(
            f"Invalid log level: {settings.log_level}. Must be one of: {', '.join(LEVELS)}"
        )

    logger = logging.getLogger(name)
    logger.setLevel(level)
    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOG_FORMAT, datefmt=ISO_DATE_FORMAT)
    for handler in _build_handlers(settings, name):
        handler.setFormatter(formatter)
        handler.addFilter(ApplicationContextFilter())
        logger.addHandler(handler)
    return logger
