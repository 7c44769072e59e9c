from __future__ import annotations

import logging
from logging import Logger

from .config import get_settings

# Third-party loggers that log every request / job run at INFO.
_CHATTY_LOGGERS = ("httpx", "apscheduler.executors.default", "aiogram.event")


def configure_logging() -> Logger:
    """
    Configure root logger for the gymops processes (bot and sweep scheduler).

    DEBUG in the local environment, INFO elsewhere, unless LOG_LEVEL overrides it.
    Request-level chatter from httpx and job-run lines from APScheduler are
    only shown when running at DEBUG.
    """

    settings = get_settings()

    if settings.log_level:
        log_level = logging.getLevelName(settings.log_level)
    else:
        log_level = logging.DEBUG if settings.is_debug else logging.INFO

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(
            logging.DEBUG if log_level == logging.DEBUG else logging.WARNING
        )

    logger = logging.getLogger("gymops")
    logger.setLevel(log_level)
    return logger
