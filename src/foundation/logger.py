"""Logging configuration with structured JSON formatter.

This module provides a JSON formatter and a `logging.config.dictConfig`
mapping for processes that run fixtures outside of pytest (the
`python -m influxdb_fixture` CLI) and for the integration test session.

Library modules never configure logging themselves. They log through
module-level loggers and attach structured context via ``extra=``; the
formatter below turns that context into top-level JSON keys.
"""

import json
import logging
import logging.config
from typing import Any

# LogRecord attributes that are either rendered explicitly or internal
_STANDARD_ATTRS: frozenset[str] = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "message",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "thread",
        "threadName",
        "taskName",
        "exc_info",
        "exc_text",
        "stack_info",
        "asctime",
        "error",
    }
)


class CustomJSONFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging.

    This formatter converts log records to JSON format, including:
    - Standard log fields (time, level, message, etc.)
    - Error information passed as ``extra={"error": {...}}``
    - Formatted traceback when the record carries ``exc_info``
    - All extra attributes passed via the extra parameter
    """

    def __init__(self, fmt: str) -> None:
        """Initialize the formatter.

        Args:
            fmt: Format string (used for asctime, but output is JSON).
        """
        logging.Formatter.__init__(self, fmt)

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as JSON.

        Args:
            record: The log record to format.

        Returns:
            JSON string representation of the log record.
        """
        logging.Formatter.format(self, record)
        return json.dumps(self.get_log(record), indent=None, default=str)

    def get_log(self, record: logging.LogRecord) -> dict[str, Any]:
        """Extract log data from record into a dictionary.

        Args:
            record: The log record to extract data from.

        Returns:
            Dictionary containing log data.
        """
        d: dict[str, Any] = {
            "time": record.asctime,
            "process_name": record.processName,
            "process_id": record.process,
            "thread_name": record.threadName,
            "thread_id": record.thread,
            "level": record.levelname,
            "logger_name": record.name,
            "pathname": record.pathname,
            "line": record.lineno,
            "message": record.message,
        }

        error_data = getattr(record, "error", None)
        if error_data is not None:
            if isinstance(error_data, dict):
                error_dict: dict[str, Any] = error_data.copy()
                if record.exc_info:
                    error_dict["trace"] = self.formatException(record.exc_info)
                d["error"] = error_dict
            else:
                d["error"] = error_data
        elif record.exc_info:
            d["trace"] = self.formatException(record.exc_info)

        # Include all non-standard attributes (from extra parameter)
        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS:
                d[key] = value

        return d


LOGGING_CONFIG: dict[str, Any] = {
    "version": 1,
    "disable_existing_loggers": False,  # Keep existing loggers, just configure them
    "formatters": {
        "standard": {"()": lambda: CustomJSONFormatter(fmt="%(asctime)s")},
    },
    "handlers": {
        "default": {
            "formatter": "standard",
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stderr",
        },
    },
    "loggers": {
        "influxdb_fixture": {
            "handlers": ["default"],
            "level": "INFO",
            "propagate": False,
        },
        "foundation": {
            "handlers": ["default"],
            "level": "INFO",
            "propagate": False,
        },
        # Reduce noise from the container runtime libraries
        "testcontainers": {
            "handlers": ["default"],
            "level": "WARNING",
            "propagate": False,
        },
        "docker": {
            "handlers": ["default"],
            "level": "WARNING",
            "propagate": False,
        },
        "urllib3": {
            "handlers": ["default"],
            "level": "WARNING",
            "propagate": False,
        },
        "httpx": {
            "handlers": ["default"],
            "level": "WARNING",
            "propagate": False,
        },
    },
    "root": {
        "handlers": ["default"],
        "level": "INFO",
    },
}


def configure_logging(level: str | int = "INFO") -> None:
    """Apply `LOGGING_CONFIG` with the fixture loggers set to ``level``.

    Args:
        level: Level name or number for the ``influxdb_fixture`` and
            ``foundation`` loggers. Third-party loggers stay at WARNING.
    """
    if isinstance(level, str):
        level = level.upper()
    config = {**LOGGING_CONFIG, "loggers": {k: dict(v) for k, v in LOGGING_CONFIG["loggers"].items()}}
    for name in ("influxdb_fixture", "foundation"):
        config["loggers"][name]["level"] = level
    logging.config.dictConfig(config)
