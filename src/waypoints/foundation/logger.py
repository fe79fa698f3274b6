"""Logging configuration with structured JSON formatter.

This module provides a JSON formatter and a `dictConfig` definition so every
component logs one JSON object per record. Components obtain loggers with
`logging.getLogger(__name__)` (or through `LoggerMixin`) and attach context
via the `extra` parameter.
"""

import json
import logging
from logging.config import dictConfig
from typing import Any

# Standard LogRecord attributes that are either emitted explicitly or internal
_STANDARD_ATTRS = frozenset(
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
    """JSON formatter for structured logging.

    This formatter converts log records to JSON, including:
    - Standard log fields (time, level, logger, message, source location)
    - Error information passed as `extra={"error": ...}` or via `exc_info`
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
            "process_id": record.process,
            "thread_name": record.threadName,
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
            d["error"] = {"trace": self.formatException(record.exc_info)}

        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS:
                d[key] = value

        return d


LOGGING_CONFIG: dict[str, Any] = {
    "version": 1,
    "disable_existing_loggers": False,
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
        "waypoints": {
            "handlers": ["default"],
            "level": "INFO",
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
        "level": "WARNING",
    },
}


def configure_logging(level: str = "INFO") -> None:
    """Install the JSON logging configuration.

    Args:
        level: Level for the `waypoints` logger hierarchy (e.g., "DEBUG").

    Example:
        ```python
        from waypoints.foundation.logger import configure_logging

        configure_logging("DEBUG")
        ```
    """
    config = {**LOGGING_CONFIG, "loggers": {**LOGGING_CONFIG["loggers"]}}
    config["loggers"]["waypoints"] = {**config["loggers"]["waypoints"], "level": level.upper()}
    dictConfig(config)
