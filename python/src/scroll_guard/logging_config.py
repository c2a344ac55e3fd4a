"""
Logging setup for Scroll Guard.

Records are written to stderr as one JSON object per line; stdout carries
the MCP stdio transport and must stay clean. Anything passed through
``extra=`` is merged into the JSON object.

LOG_LEVEL selects verbosity. DEBUG includes response previews and must not be
enabled in production.
"""

import json
import logging
import sys
from datetime import datetime, timezone

LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}

# Attributes every LogRecord carries; anything else came from extra=
_RESERVED = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


def parse_level(name: str | None) -> int:
    """Map a level name to a logging level. Unknown names mean INFO."""
    return LEVELS.get((name or "").strip().upper(), logging.INFO)


class JsonFormatter(logging.Formatter):
    def __init__(self, service: str):
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "message": record.getMessage(),
            "service": self.service,
            "logger": record.name,
        }
        for key, value in vars(record).items():
            if key not in _RESERVED and not key.startswith("_"):
                entry[key] = value
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        try:
            return json.dumps(entry, default=str)
        except (TypeError, ValueError):
            return f"[{entry['timestamp']}] {record.levelname}: {entry['message']}"


def configure_logging(level: str | None = None, service: str = "scroll-guard-backend") -> None:
    """Install the JSON handler on the package logger."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter(service))

    package_logger = logging.getLogger("scroll_guard")
    package_logger.handlers.clear()
    package_logger.addHandler(handler)
    package_logger.setLevel(parse_level(level))
    package_logger.propagate = False
