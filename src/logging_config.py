"""Centralized logging configuration for the workout mail monitor."""

import json
import logging
import os
from datetime import datetime, timezone

NOISY_LOGGERS = (
    "googleapiclient",
    "google.auth",
    "google_auth_oauthlib",
    "urllib3",
    "httpx",
    "httpcore",
)

# Attributes the monitor attaches through ``extra=`` that JSON output keeps
CONTEXT_FIELDS = ("provider", "message_id", "pass_result")


class JSONFormatter(logging.Formatter):
    """JSON log formatter for log aggregator compatibility.

    Produces one JSON object per line (NDJSON). Scheduled checks run on
    the trigger thread, so the thread name tells them apart from the
    main thread. Context passed with ``extra=`` is kept, e.g. the end
    of a scheduled pass::

        {"timestamp": "2024-01-15T10:05:00.412000+00:00", "level": "INFO",
         "logger": "src.monitor.scheduler", "thread": "periodic-trigger",
         "message": "Pass finished: 2 found, 2 downloaded, ...",
         "pass_result": {"messages_found": 2, "files_downloaded": 2, ...}}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_entry[field] = value
        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def _resolve_level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(level_override: str | None = None) -> None:
    """Configure the root logger from LOG_LEVEL and LOG_FORMAT.

    Args:
        level_override: Takes precedence over LOG_LEVEL (the CLI's
            --log-level flag). Unknown level names fall back to INFO.

    LOG_FORMAT=json switches to NDJSON for log aggregators; anything
    else gives a human-readable line that includes the thread name.
    """
    level = _resolve_level(level_override or os.getenv("LOG_LEVEL", "INFO"))

    handler = logging.StreamHandler()
    handler.setLevel(level)
    if os.getenv("LOG_FORMAT", "text").lower() == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s [%(levelname)s] %(threadName)s %(name)s: %(message)s"
            )
        )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    # Google client and HTTP transport logs drown out pass summaries at INFO
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
