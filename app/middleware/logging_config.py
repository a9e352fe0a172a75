"""
Structured logging configuration.

Development writes a colored one-line format; production writes one JSON
object per line.  LOG_LEVEL overrides the level in both.

Workflow services log with ``extra={"project_id", "company_id", "step",
"event_type"}``; ``RequestContextFilter`` adds the request id and the acting
user to every record emitted inside a request, so a single save or submit
can be followed across the store, guard and notification loggers.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

from flask import g, has_request_context

# Record attributes copied into the JSON payload when present
CONTEXT_FIELDS = (
    "request_id",
    "user_id",
    "company_id",
    "project_id",
    "step",
    "event_type",
    "method",
    "path",
    "status",
    "duration_ms",
    "remote_addr",
)


class RequestContextFilter(logging.Filter):
    """Attach ``request_id`` and ``user_id`` from ``flask.g``."""

    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            if getattr(record, "request_id", None) is None:
                record.request_id = getattr(g, "request_id", None)
            if getattr(record, "user_id", None) is None:
                record.user_id = getattr(g, "jwt_user_id", None)
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """Colored single-line formatter for development."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = f"{color}{ts} {record.levelname:<8}{self.RESET} {record.name}: {record.getMessage()}"

        context = [
            f"{key}={getattr(record, key)}"
            for key in ("project_id", "step", "user_id")
            if getattr(record, key, None) is not None
        ]
        if context:
            line += f" ({' '.join(context)})"
        duration = getattr(record, "duration_ms", None)
        if duration is not None:
            line += f" [{duration:.0f}ms]"
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """Install one stderr handler on the root logger.

    Level: LOG_LEVEL, else DEBUG in development/testing and INFO in
    production.  Re-running (one app per test session) replaces the handler
    instead of stacking duplicates.
    """
    is_testing = app.config.get("TESTING", False)
    is_prod = not app.config.get("DEBUG", False) and not is_testing

    level_name = os.getenv("LOG_LEVEL", "INFO" if is_prod else "DEBUG").upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if is_prod else ReadableFormatter())
    handler.addFilter(RequestContextFilter())
    handler.setLevel(level)

    root = logging.getLogger()
    for existing in list(root.handlers):
        if isinstance(existing.formatter, (JSONFormatter, ReadableFormatter)):
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)

    for noisy in ("urllib3", "werkzeug", "sqlalchemy.engine"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    app.logger.setLevel(level)
    if not is_testing:
        app.logger.info(
            "Logging configured: level=%s format=%s", level_name, "json" if is_prod else "readable",
        )
