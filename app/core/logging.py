"""Logging configuration."""

import json
import logging
from datetime import datetime, timezone

PLAIN_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Attributes every LogRecord carries; anything else came in through ``extra``
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    """One JSON object per line: time, level, logger, message and ``extra`` fields."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update({key: value for key, value in vars(record).items() if key not in _RECORD_ATTRS})
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(level: str = "INFO", json_format: bool = False) -> None:
    """
    Configure the root logger with a single stream handler.

    Args:
        level: Log level name
        json_format: Emit JSON lines instead of plain text
    """
    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter() if json_format else logging.Formatter(PLAIN_FORMAT))

    root_logger = logging.getLogger()
    root_logger.setLevel(level.upper())
    root_logger.handlers = [handler]

    # Access logs only for problems
    uvicorn_access = logging.getLogger("uvicorn.access")
    uvicorn_access.handlers = [handler]
    uvicorn_access.setLevel(logging.WARNING)
