"""Structured Logging: JSON formatter and setup for production observability.

Invariants:
    - All logs include timestamp, level, logger name, and message
    - Extra fields (job_id, job_kind, provider, attempt, ...) surfaced when present
    - JSON format in production, human-readable in development

Design Decisions:
    - JSONFormatter over third-party libs: zero dependencies, full control
    - setup_logging called once on startup (API lifespan or run_worker)
"""

import logging
import json
from datetime import datetime, timezone

_EXTRA_KEYS = (
    "job_id", "job_kind", "worker", "provider", "attempt", "frame_index",
    "status_code", "error_code", "guest_client_id", "processed_total",
    "batch_size", "path",
)


class JSONFormatter(logging.Formatter):
    """Format logs as JSON for structured logging in production."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _EXTRA_KEYS:
            val = record.__dict__.get(key)
            if val is not None:
                log[key] = val if isinstance(val, (int, float, bool)) else str(val)
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False)


def setup_logging(level: str = "INFO", fmt: str = "json"):
    """Configure logging for the application."""
    handler = logging.StreamHandler()
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s",
        ))
    logging.root.handlers = [handler]
    logging.root.setLevel(getattr(logging, level.upper(), logging.INFO))
    # httpx logs every request at INFO; provider polling would flood the stream
    logging.getLogger("httpx").setLevel(logging.WARNING)
