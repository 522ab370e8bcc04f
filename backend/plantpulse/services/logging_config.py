"""
Structured logging configuration for the plantpulse engine.

The engine never configures logging on its own.  Its modules only log through
named loggers (``plantpulse-dashboard``, ``plantpulse-cost`` ...), so an
embedding application calls ``setup_logging_from_env()`` (or ``setup_logging``
with explicit values) once at startup to install a root handler:

  LOG_LEVEL   root level name, default INFO
  LOG_FORMAT  "json" (default) for one JSON object per line, "text" otherwise

A local .env file is loaded first, without overriding the process env.
Dashboard passes add ``pass_id`` to their records and the timing decorator
adds ``timed_function`` / ``duration_ms``; the JSON formatter carries those
through when present.
"""
import json
import logging
import os
import sys
from datetime import datetime, timezone

from dotenv import load_dotenv

# Extra record attributes copied into JSON entries when set
CONTEXT_FIELDS = ("pass_id", "timed_function", "duration_ms")


class JSONFormatter(logging.Formatter):
    """JSON structured log formatter for production."""
    def format(self, record):
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        for field in CONTEXT_FIELDS:
            if hasattr(record, field):
                log_entry[field] = getattr(record, field)
        return json.dumps(log_entry, default=str)


def setup_logging(level: str = "INFO", json_output: bool = True):
    """Configure application logging."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stdout)
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
        ))

    root.handlers = [handler]


def setup_logging_from_env():
    """LOG_LEVEL / LOG_FORMAT (json | text), read after loading a local .env."""
    load_dotenv()
    setup_logging(
        level=os.getenv("LOG_LEVEL", "INFO"),
        json_output=os.getenv("LOG_FORMAT", "json").lower() != "text",
    )
