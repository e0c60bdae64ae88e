"""JSON structured logging configuration."""

import logging
import sys
from typing import Any

from pythonjsonlogger.json import JsonFormatter

# LogRecord attributes that are not user supplied ``extra`` fields
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "taskName"}

_REDACTED_KEYS = ("cert",)


def _redact(value: Any, seen: set[int]) -> Any:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return "<bytes> not included"
    if isinstance(value, (dict, list, tuple)):
        if id(value) in seen:
            return None
        seen = seen | {id(value)}
        if isinstance(value, dict):
            return {
                k: f"<{k}> not included" if k in _REDACTED_KEYS else _redact(v, seen)
                for k, v in value.items()
            }
        return [_redact(item, seen) for item in value]
    return value


class BinaryRedactingFilter(logging.Filter):
    """Replace binary payloads and certificates in ``extra`` fields.

    Resources carry raw response bodies; logging them verbatim would flood the
    JSON output. Circular references are cut and replaced by ``None``.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in list(vars(record).items()):
            if key in _RECORD_ATTRS:
                continue
            if key in _REDACTED_KEYS:
                setattr(record, key, f"<{key}> not included")
            else:
                setattr(record, key, _redact(value, set()))
        return True


def setup_logging(log_level: str = "INFO") -> None:
    """Configure root and uvicorn loggers for JSON output on stdout."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    formatter = JsonFormatter(
        fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
        rename_fields={
            "asctime": "timestamp",
            "levelname": "level",
            "name": "logger",
        },
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )

    # Configure root logger
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.addFilter(BinaryRedactingFilter())
    root.addHandler(handler)

    # Reconfigure uvicorn loggers to use JSON formatter
    for name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
        uv_logger = logging.getLogger(name)
        uv_logger.handlers.clear()
        uv_logger.addHandler(handler)
        uv_logger.propagate = False
