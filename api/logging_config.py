"""
Centralized logging configuration for the daemon.

Call configure_logging() once from the entry point. Third-party loggers
that would flood the daemon log with per-request noise are raised to
WARNING.
"""
import logging
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_SUPPRESSED_LOGGERS = [
    'uvicorn.access',
    'multipart',
    'python_multipart',
]


def configure_logging(level: str = "INFO", log_file: Optional[Path] = None):
    """Configure root logging with console and optional file output"""
    handlers = [logging.StreamHandler()]
    if log_file is not None:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(level=getattr(logging, level, logging.INFO),
                        format=LOG_FORMAT, handlers=handlers, force=True)

    for logger_name in _SUPPRESSED_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)
