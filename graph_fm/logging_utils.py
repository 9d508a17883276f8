"""Logging configuration and error reporting helpers."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from .errors import GraphFeatureError

DEFAULT_LOGGER_NAME = "graph_fm"
DEFAULT_LOG_LEVEL = logging.INFO
DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(
    level: int = DEFAULT_LOG_LEVEL,
    *,
    logger_name: str = DEFAULT_LOGGER_NAME,
    fmt: str = DEFAULT_LOG_FORMAT,
    force: bool = False,
) -> logging.Logger:
    logging.basicConfig(level=level, format=fmt, force=force)
    logger = logging.getLogger(logger_name)
    logger.setLevel(level)
    return logger


def get_user_message(exc: BaseException) -> str:
    if isinstance(exc, GraphFeatureError):
        return exc.log_message()
    if isinstance(exc, (ValueError, FileNotFoundError)):
        return str(exc)
    return f"Unexpected error: {exc}"


def log_exception(
    logger: logging.Logger,
    exc: BaseException,
    context: Optional[Mapping[str, Any]] = None,
    *,
    show_traceback: bool = False,
) -> str:
    """Log ``exc`` as one error line (plus ``context``) and return the message."""
    user_message = get_user_message(exc)
    if context:
        user_message = f"{user_message} [{', '.join(f'{k}={v}' for k, v in context.items())}]"
    logger.error(user_message)
    if show_traceback:
        logger.error("Detailed traceback:", exc_info=exc)
    else:
        logger.debug("Detailed traceback:", exc_info=exc)
    return user_message


__all__ = [
    "DEFAULT_LOGGER_NAME",
    "DEFAULT_LOG_LEVEL",
    "DEFAULT_LOG_FORMAT",
    "configure_logging",
    "get_user_message",
    "log_exception",
]
