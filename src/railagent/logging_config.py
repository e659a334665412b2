"""
Logging Configuration
Sets up file-based logging with separate log files for each pipeline concern
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

# Log format
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Max log file size (10MB)
MAX_BYTES = 10 * 1024 * 1024
BACKUP_COUNT = 5

# logger name -> file name
LOG_FILES = {
    "railagent.orchestrator": "app.log",
    "railagent.store": "store.log",
    "railagent.webhooks": "webhooks.log",
    "railagent.providers": "providers.log",
}


def setup_file_logger(name: str, log_file: Path, level: int = logging.INFO) -> logging.Logger:
    """
    Attach a rotating file handler for one pipeline concern (plus a
    WARNING-level console handler) to logger ``name``.

    Calling it again for the same name replaces the previous handlers, so
    tests and restarts can point the logs at a new directory.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=MAX_BYTES,
        backupCount=BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))

    # Console handler, warnings and errors only
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.WARNING)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)
    return logger


def setup_logging(log_level: str = "INFO", log_dir: Optional[str] = None) -> Path:
    """
    Set up all loggers for the pipeline. Returns the log directory.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    directory = Path(log_dir or "logs")
    directory.mkdir(parents=True, exist_ok=True)

    for name, file_name in LOG_FILES.items():
        setup_file_logger(name, directory / file_name, level)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Keep SQLAlchemy engine logs out of the app log unless asked for
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    logging.getLogger("railagent.orchestrator").info("Logging configured. Log files in: %s", directory)
    return directory


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance (creates if doesn't exist)
    """
    return logging.getLogger(name)
