"""Structured logging configuration for r2store.

r2store itself only emits records through module loggers under the
``r2store`` namespace (transport calls at DEBUG). Applications that want
those records on stderr, optionally as JSON, call ``configure_logging``.
"""

import json
import logging
import sys
from datetime import datetime, timezone

# Extras attached to records by Bucket operations.
_EXTRA_FIELDS = ("bucket", "key", "operation", "status", "duration_ms")


class JSONFormatter(logging.Formatter):
    """Formats log records as single-line JSON objects.

    Fields: timestamp, level, logger, message, plus any operation extras
    that are set and not None.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        entry.update(
            (name, getattr(record, name))
            for name in _EXTRA_FIELDS
            if getattr(record, name, None) is not None
        )
        return json.dumps(entry, default=str)


def configure_logging(level: str = "INFO", fmt: str = "text", logger_name: str = "") -> None:
    """Attach a single stderr handler to a logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
            Unknown names fall back to INFO.
        fmt: 'text' for human-readable output, 'json' for structured.
        logger_name: Logger to configure; the root logger by default. Pass
            ``"r2store"`` to route only this library's records.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    target = logging.getLogger(logger_name or None)
    target.setLevel(numeric_level)

    for handler in target.handlers[:]:
        target.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric_level)
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
    target.addHandler(handler)

    if logger_name:
        target.propagate = False
