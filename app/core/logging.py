"""Logging setup driven by the ``log_level`` and ``log_format`` settings."""

import json
import logging
from datetime import UTC, datetime
from typing import Any

from app.core.config import LogFormatEnum, settings

SIMPLE_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class JSONFormatter(logging.Formatter):
    """Serialize log records as one JSON object per line."""

    _RESERVED = {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
    }

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key in self._RESERVED:
                continue
            payload[key] = value

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(
    level: str | None = None,
    log_format: LogFormatEnum | None = None,
) -> None:
    """Install a single stream handler on the root logger.

    Args:
        level: Level name, defaults to ``settings.log_level``
        log_format: ``json`` or ``simple``, defaults to ``settings.log_format``
    """
    level = level or settings.log_level.value
    log_format = log_format or settings.log_format

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler()
    if log_format == LogFormatEnum.json:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(SIMPLE_FORMAT))
    root_logger.addHandler(handler)

    # SQL echo is controlled by settings.debug on the engine
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
