from __future__ import annotations

import logging
import os
from typing import Callable, List, Optional


_CONFIGURED = False

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> None:
    """Configure root logging once with a consistent, readable format.

    Args:
        level: Optional log level name (e.g., "INFO", "DEBUG"). If omitted,
               reads LOG_LEVEL env or defaults to INFO.
        log_file: Optional path; records are written there as well as to stderr.
    """
    global _CONFIGURED
    log_level_name = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    log_level = getattr(logging, log_level_name, logging.INFO)

    if _CONFIGURED:
        # Module imports configure logging early; a CLI may still refine it.
        root = logging.getLogger()
        if level:
            root.setLevel(log_level)
        if log_file:
            handler = logging.FileHandler(log_file, encoding="utf-8")
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
            root.addHandler(handler)
        return

    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(level=log_level, format=LOG_FORMAT, handlers=handlers)

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    """Return a module logger with global config ensured."""
    setup_logging()
    return logging.getLogger(name)


def progress_logger(logger: logging.Logger) -> Callable[[str], None]:
    """Return a progress callback that forwards messages to ``logger``."""

    def _report(message: str) -> None:
        logger.info(message)

    return _report
