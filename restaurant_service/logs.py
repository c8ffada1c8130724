"""
Logging setup shared by the app, routers and scripts.

Logging failures never crash the app.
"""
import json
import logging
import sys
from typing import Optional

from restaurant_service.config import config


def setup_logging() -> None:
    """Setup structured JSON (or text) logging to stdout."""
    try:
        log_level = getattr(logging, config.LOG_LEVEL.upper(), logging.INFO)

        if config.LOG_FORMAT == "json":
            log_format = (
                '{"timestamp": "%(asctime)s", "level": "%(levelname)s", '
                '"module": "%(module)s", "message": "%(message)s"}'
            )
        else:
            log_format = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

        logging.basicConfig(
            level=log_level,
            format=log_format,
            datefmt="%Y-%m-%d %H:%M:%S",
            stream=sys.stdout,
            force=True,
        )
    except Exception:
        pass  # Never crash on logging setup


def safe_log(
    message: str,
    level: str = "info",
    logger: Optional[logging.Logger] = None,
    **extra,
) -> None:
    """
    Log safely - never crash on logging failure.

    Extra keyword arguments are appended to the message as JSON so they
    survive the single-line JSON log format.
    """
    try:
        target = logger or logging.getLogger("restaurant_service")
        log_func = getattr(target, level.lower(), target.info)
        if extra:
            extra_str = json.dumps(extra, default=str)
            log_func(f"{message} | {extra_str}")
        else:
            log_func(message)
    except Exception:
        pass
