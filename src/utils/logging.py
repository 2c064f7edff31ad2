"""Structured logging setup for the recognition service."""

import json
import logging
import sys

from src.core.config import get_settings


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        data = {
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }
        # Structured fields emitted by the vision core; credentials are never passed here
        for attr in [
            "provider",
            "model",
            "latency_ms",
            "error_code",
            "status_code",
            "session_id",
            "image_bytes",
            "catalog_size",
        ]:
            if hasattr(record, attr):
                data[attr] = getattr(record, attr)
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(data, ensure_ascii=False)


def setup_logging() -> None:
    root = logging.getLogger()
    root.setLevel(get_settings().LOG_LEVEL.upper())
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    root.handlers = [handler]
