"""
Basic logging configuration for the application.

``setup_logging`` configures the root logger with a console handler
and, when a log file is configured, a file handler.  It runs exactly
once per process so that repeated ``create_app`` calls (tests, reload)
do not duplicate handlers.
"""

import logging
from pathlib import Path
from typing import Optional


def setup_logging(level: str = "INFO", logfile: Optional[str] = None) -> None:
    """Configure root logger.

    Parameters
    ----------
    level : str
        Logging level name (e.g. ``"DEBUG"``, ``"INFO"``).  Case
        insensitive.
    logfile : Optional[str]
        Path to a file to log messages to.  If omitted, no file
        handler is added.
    """
    logger = logging.getLogger()
    if logger.handlers:
        return

    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(numeric_level)

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if logfile:
        log_path = Path(logfile).resolve()
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    # httpx logs every request URL at INFO, which would leak provider keys
    # passed as query parameters (Sisdial, Gemini).
    logging.getLogger("httpx").setLevel(logging.WARNING)


def mask_phone(phone: Optional[str]) -> str:
    """Return a phone number with all but the last four digits hidden."""
    if not phone:
        return ""
    return "*" * max(len(phone) - 4, 0) + phone[-4:]
