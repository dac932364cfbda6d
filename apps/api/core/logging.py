"""
Structured logging for the relay.

JSON lines in production, plain text locally. Call sites attach context with
``extra={"extra_fields": {...}}``; credential-bearing keys are masked so a
bearer token or service key never reaches the log stream.
"""
import logging
import sys
import json
from datetime import datetime, timezone
from typing import Any, Dict
from core.config import settings

SERVICE_NAME = "flick-coach-relay"

REDACTED = "[redacted]"
SENSITIVE_FIELDS = frozenset({"authorization", "token", "access_token", "apikey", "api_key", "service_role_key"})


def _redact(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {
        key: REDACTED if key.lower() in SENSITIVE_FIELDS else value
        for key, value in fields.items()
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with request context merged in."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "service": SERVICE_NAME,
            "environment": settings.ENVIRONMENT,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra_fields = getattr(record, "extra_fields", None)
        if isinstance(extra_fields, dict):
            log_data.update(_redact(extra_fields))

        return json.dumps(log_data, default=str)


def setup_logging():
    """Install a single stdout handler on the root logger."""
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    if settings.LOG_FORMAT == "json" or settings.ENVIRONMENT == "production":
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Provider SDKs log every HTTP round trip at INFO
    for noisy in ("httpx", "httpcore", "openai", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return root_logger
