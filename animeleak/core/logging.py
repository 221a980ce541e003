"""
One JSON object per log line. Messages are snake_case event names; context
goes through `extra=` and only the fields below are emitted.
"""
import json
import logging
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler

from animeleak.core.config import settings

# httpx logs full request URLs at INFO, which include the Gemini ?key= parameter.
QUIET_LOGGERS = ("httpx", "httpcore")


class JsonFormatter(logging.Formatter):
    EXTRA_FIELDS = (
        "image_id", "user_id", "order_id", "session_id", "request_id",
        "path", "method", "status_code", "latency_ms", "status", "error",
        "attempts", "credits", "failure_type", "event_type", "provider", "response",
    )

    def _extras(self, record: logging.LogRecord) -> dict:
        out = {}
        for field in self.EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                out[field] = value
        return out

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **self._extras(record),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def _handlers(formatter: logging.Formatter) -> list[logging.Handler]:
    stream = logging.StreamHandler()
    stream.setFormatter(formatter)
    handlers: list[logging.Handler] = [stream]
    if settings.log_file:
        rotating = RotatingFileHandler(
            settings.log_file,
            maxBytes=settings.log_max_bytes,
            backupCount=settings.log_backup_count,
        )
        rotating.setFormatter(formatter)
        handlers.append(rotating)
    return handlers


def configure_logging() -> None:
    """Used by the API at startup and by Celery workers (setup_logging signal)."""
    root = logging.getLogger()
    root.setLevel(settings.log_level.upper())
    root.handlers = _handlers(JsonFormatter())
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
