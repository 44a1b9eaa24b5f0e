from __future__ import annotations

import logging
import logging.config
from pathlib import Path
from typing import Any

from app.core.config import settings

_CONFIGURED = False

DEFAULT_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Server loggers routed through the same handlers as the application.
SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def _build_handlers(log_file: str | None) -> dict[str, Any]:
    handlers: dict[str, Any] = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        }
    }
    if not log_file:
        return handlers

    log_file_path = Path(log_file).expanduser()
    try:
        log_file_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        logging.getLogger(__name__).warning("Failed to prepare log directory for %s: %s", log_file_path, exc)
        return handlers

    handlers["file"] = {
        "class": "logging.FileHandler",
        "formatter": "standard",
        "filename": str(log_file_path),
        "encoding": "utf-8",
    }
    return handlers


def configure_logging(force: bool = False) -> None:
    """
    Configure application wide logging.

    Console output always, plus a file handler when LOG_FILE is set. The pattern and
    level come from LOG_FORMAT / LOG_DATE_FORMAT / LOG_LEVEL.
    """
    global _CONFIGURED
    if _CONFIGURED and not force:
        return

    log_level = settings.LOG_LEVEL.upper()
    handlers = _build_handlers(settings.LOG_FILE)
    handler_names = list(handlers)

    loggers: dict[str, Any] = {"": {"handlers": handler_names, "level": log_level}}
    for name in SERVER_LOGGERS:
        loggers[name] = {"handlers": handler_names, "level": log_level, "propagate": False}

    config: dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": settings.LOG_FORMAT or DEFAULT_LOG_FORMAT,
                "datefmt": settings.LOG_DATE_FORMAT or DEFAULT_DATE_FORMAT,
            }
        },
        "handlers": handlers,
        "loggers": loggers,
    }

    logging.config.dictConfig(config)
    logging.getLogger(__name__).debug("Logging configured (level=%s, handlers=%s)", log_level, handler_names)
    _CONFIGURED = True
