"""
Logging setup for Printshop Orders.
The API, the CLI and the scheduler all log through the root logger; each
module gets its own logger with logging.getLogger(__name__).
"""

import os
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_LEVEL_ENV_VAR = "PRINTSHOP_LOG_LEVEL"

# Third-party loggers that are too chatty at the application level
NOISY_LOGGERS = ('urllib3', 'httpx', 'uvicorn.access')


def setup_logging(
    log_file: Optional[Path] = None,
    level: str = "INFO",
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3
) -> logging.Logger:
    """
    Send log records to the console and, when log_file is given, to a
    size-rotated file.

    Calling it again replaces the handlers, so the CLI and the server can
    both call it safely. PRINTSHOP_LOG_LEVEL overrides level.
    """
    level = os.environ.get(LOG_LEVEL_ENV_VAR) or level
    log_level = getattr(logging, level.upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    handlers = [logging.StreamHandler()]
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding='utf-8'
        ))

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.setLevel(log_level)
        root_logger.addHandler(handler)

    # Upstream request lines only show up when debugging
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    return root_logger


def setup_logging_from_config(config) -> logging.Logger:
    """Configure logging from the `general` config section."""
    return setup_logging(
        log_file=config.log_path,
        level=config.get('general', 'log_level', default='INFO'),
        max_bytes=config.get_int('general', 'log_max_bytes', default=5 * 1024 * 1024),
        backup_count=config.get_int('general', 'log_backup_count', default=3)
    )
