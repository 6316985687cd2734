"""Logging setup: JSON lines for pipeline runs, plain text for local use."""

import json
import logging
import sys
import traceback
from datetime import datetime, timezone
from typing import Optional

# Attributes every LogRecord has; anything else came in through ``extra``
_RESERVED_ATTRS = {
    "name", "msg", "args", "created", "filename", "funcName", "levelname",
    "levelno", "lineno", "module", "msecs", "pathname", "process",
    "processName", "relativeCreated", "stack_info", "exc_info", "exc_text",
    "thread", "threadName", "message", "taskName",
}

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
HANDLER_NAME = "housing_cleanup"


class JsonFormatter(logging.Formatter):
    """Render each record as one JSON object, extras included."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": traceback.format_exception(*record.exc_info),
            }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and key not in entry:
                entry[key] = value

        return json.dumps(entry, default=str)


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    stream=None,
) -> logging.Logger:
    """Configure the root logger.

    Args:
        level: Log level name
        json_format: Emit JSON lines instead of plain text
        stream: Output stream (defaults to stderr)

    Returns:
        The root logger
    """
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.set_name(HANDLER_NAME)
    if json_format:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    root = logging.getLogger()
    # Handlers installed by others stay in place
    for existing in list(root.handlers):
        if existing.get_name() == HANDLER_NAME:
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    return root


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(name)
