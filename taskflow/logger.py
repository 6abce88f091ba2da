import json
import logging
import os
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler

from taskflow.config import settings

# Attributes copied from ``extra={...}`` into the JSON line when present
EXTRA_FIELDS = (
    "request_id",
    "user_id",
    "project_id",
    "task_id",
    "sid",
    "event",
    "room",
    "path",
    "method",
    "status_code",
    "duration_ms",
    "client",
)


def json_formatter(record):
    log = {
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "level": record.levelname,
        "service": "taskflow-api",
        "logger": record.name,
        "message": record.getMessage(),
    }

    for field in EXTRA_FIELDS:
        if hasattr(record, field):
            log[field] = getattr(record, field)

    if record.exc_info:
        log["exception"] = logging.Formatter().formatException(record.exc_info)

    return json.dumps(log, default=str)


class JSONFormatter(logging.Formatter):
    def format(self, record):
        return json_formatter(record)


logger = logging.getLogger("taskflow")
logger.setLevel(settings.LOG_LEVEL)

json_f = JSONFormatter()

if not logger.handlers:
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(json_f)
    logger.addHandler(console_handler)

    if settings.LOG_FILE:
        log_dir = os.path.dirname(settings.LOG_FILE)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            settings.LOG_FILE,
            maxBytes=5 * 1024 * 1024,
            backupCount=5,
        )
        file_handler.setFormatter(json_f)
        logger.addHandler(file_handler)


def get_logger(name: str) -> logging.Logger:
    """Child logger sharing the ``taskflow`` handlers."""
    return logger.getChild(name)
