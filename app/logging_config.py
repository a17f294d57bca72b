"""
Logging configuration for the Wallet API.

setup_logging() is called once from the application lifespan. Modules get
their logger with logging.getLogger(__name__), so everything lands under the
"app" hierarchy.

Console output always; a rotating file handler is added when LOG_FILE is set.
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from app.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

MAX_BYTES = 10 * 1024 * 1024  # 10 MB
BACKUP_COUNT = 5


def setup_logging(level_name: str | None = None, log_file: str | None = None) -> None:
    level_name = (level_name or settings.LOG_LEVEL).upper()
    level = getattr(logging, level_name, logging.INFO)
    log_file = log_file or settings.LOG_FILE

    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)

    app_logger = logging.getLogger("app")
    app_logger.setLevel(level)
    # Avoid duplicate handlers if setup_logging is called more than once
    for handler in list(app_logger.handlers):
        app_logger.removeHandler(handler)
        handler.close()
    app_logger.propagate = False

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    app_logger.addHandler(console_handler)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            path,
            maxBytes=MAX_BYTES,
            backupCount=BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        app_logger.addHandler(file_handler)

    # SQL statements are echoed by the engine in DEBUG mode; keep the pool quiet
    logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)
