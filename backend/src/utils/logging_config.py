"""
Logging setup for the OTA update server.

Three named loggers live under the "ota_server" namespace:
- api: request handling and exception handlers
- services: update decisions, channel assignment, publishing
- db: check-in bookkeeping and database failures

OTA_ENV=production writes one rotating JSON file per logger into
OTA_LOG_DIR. Anything else logs readable lines to stdout, with the
app/device context of a check appended when present.

Environment Variables:
    OTA_ENV: production | development | test (default: development)
    OTA_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR, CRITICAL (default: INFO)
    OTA_LOG_DIR: Directory for production log files (default: ./logs)
"""

import json
import logging
import logging.handlers
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional


LOGGER_NAMESPACE = "ota_server"
LOGGER_NAMES = ("api", "services", "db")

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5

# Context fields shown inline on console lines
CONTEXT_FIELDS = ("app_id", "device_id", "platform", "channel", "version")

# Attributes present on every LogRecord; anything else came from extra={...}
_RESERVED_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


def _extra_fields(record: logging.LogRecord) -> Dict[str, object]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RESERVED_ATTRS
    }


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line.

    Fixed keys are timestamp (UTC, "Z" suffix), level, logger, message
    and the call site. Fields passed through extra={...} are merged in
    at the top level, and a traceback lands under "exception".
    """

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        for key, value in _extra_fields(record).items():
            payload.setdefault(key, value)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class ConsoleFormatter(logging.Formatter):
    """
    Development output.

    Example:
        [2026-03-02 10:30:45] INFO ota_server.services: Update available (app_id=com.example.app version=1.2.0)
    """

    def __init__(self):
        super().__init__(
            fmt="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extras = _extra_fields(record)
        context = " ".join(
            f"{field}={extras[field]}" for field in CONTEXT_FIELDS if extras.get(field) is not None
        )
        return f"{line} ({context})" if context else line


def _level_from_env() -> int:
    return getattr(logging, os.environ.get("OTA_LOG_LEVEL", "INFO").upper(), logging.INFO)


def _production_log_dir() -> Optional[Path]:
    """Log directory when running in production, otherwise None."""
    if os.environ.get("OTA_ENV", "development").lower() != "production":
        return None
    log_dir = Path(os.environ.get("OTA_LOG_DIR", "logs"))
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def _make_handler(short_name: str, log_dir: Optional[Path]) -> logging.Handler:
    if log_dir is None:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(ConsoleFormatter())
        return handler

    handler = logging.handlers.RotatingFileHandler(
        log_dir / f"{short_name}.log",
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8",
    )
    handler.setFormatter(JSONFormatter())
    return handler


def configure_logging() -> Dict[str, logging.Logger]:
    """
    (Re)build every server logger from the environment.

    Existing handlers are replaced, so calling this twice does not
    duplicate output. Loggers do not propagate to the root logger.

    Returns:
        Mapping of short name ("api", "services", "db") to Logger
    """
    level = _level_from_env()
    log_dir = _production_log_dir()

    configured = {}
    for short_name in LOGGER_NAMES:
        logger = logging.getLogger(f"{LOGGER_NAMESPACE}.{short_name}")
        logger.setLevel(level)
        logger.propagate = False
        logger.handlers.clear()

        handler = _make_handler(short_name, log_dir)
        handler.setLevel(level)
        logger.addHandler(handler)

        configured[short_name] = logger
    return configured


_loggers: Optional[Dict[str, logging.Logger]] = None


def get_logger(name: str) -> logging.Logger:
    """
    Return the server logger for a short name, configuring on first use.

    Raises:
        ValueError: If name is not one of LOGGER_NAMES

    Example:
        >>> get_logger("services").info("Update available", extra={"app_id": "com.example.app"})
    """
    global _loggers

    if _loggers is None:
        _loggers = configure_logging()

    try:
        return _loggers[name]
    except KeyError:
        raise ValueError(
            f"Unknown logger name: {name}. Valid names: {', '.join(LOGGER_NAMES)}"
        ) from None


def init_logging() -> Dict[str, logging.Logger]:
    """Configure logging at application startup."""
    global _loggers
    _loggers = configure_logging()
    return _loggers
