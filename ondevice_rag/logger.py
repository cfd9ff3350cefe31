"""
Logging Setup Module

Provides structured logging for the pipeline:
- JSONFormatter: one JSON object per record, extra fields included
- setup_logger(): idempotent handler installation driven by env vars

Modules log through ``logging.getLogger(__name__)``; this module only
configures the ``ondevice_rag`` parent logger.
"""

import json
import logging
import os
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# LogRecord attributes that are not user supplied extras
_INTERNAL_LOGRECORD_KEYS = {
    "name", "msg", "args", "levelname", "levelno", "pathname", "filename",
    "module", "exc_info", "exc_text", "stack_info", "lineno", "funcName",
    "created", "msecs", "relativeCreated", "thread", "threadName",
    "processName", "process", "message", "taskName",
}

_TRUTHY = {"1", "true", "yes", "on"}


class _Redactor:
    """Redacts secret-looking keys and trims oversized values."""

    SENSITIVE_KEYS = {
        "api_key",
        "apikey",
        "authorization",
        "password",
        "secret",
        "token",
        "access_token",
    }

    def __init__(self, max_str: int = 4000, max_depth: int = 4):
        self._max_str = max_str
        self._max_depth = max_depth

    def sanitize(self, value: Any, depth: int = 0, key: Optional[str] = None) -> Any:
        if key and key.lower() in self.SENSITIVE_KEYS:
            return "***REDACTED***"

        if depth > self._max_depth:
            return "***TRUNCATED***"

        if isinstance(value, str):
            if len(value) <= self._max_str:
                return value
            return value[: self._max_str] + "...(truncated)"

        if isinstance(value, (bytes, bytearray)):
            return f"<bytes {len(value)}B>"

        if isinstance(value, dict):
            return {
                str(k): self.sanitize(v, depth=depth + 1, key=str(k))
                for k, v in value.items()
            }

        if isinstance(value, (list, tuple)):
            return [self.sanitize(v, depth=depth + 1, key=key) for v in value]

        try:
            json.dumps(value)
            return value
        except (TypeError, ValueError):
            return str(value)


class JSONFormatter(logging.Formatter):
    """Formats a LogRecord as a single-line JSON object."""

    def __init__(self):
        super().__init__()
        self._redactor = _Redactor()

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for k, v in record.__dict__.items():
            if k in _INTERNAL_LOGRECORD_KEYS:
                continue
            payload[k] = self._redactor.sanitize(v, key=k)

        if record.exc_info:
            exc_type = record.exc_info[0].__name__ if record.exc_info[0] else None
            exc_msg = str(record.exc_info[1]) if record.exc_info[1] else None
            payload["exception"] = {
                "type": exc_type,
                "message": exc_msg,
                "stacktrace": traceback.format_exception(*record.exc_info),
            }

        return json.dumps(payload, ensure_ascii=False, default=str, separators=(",", ":"))


def setup_logger(
    name: str = "ondevice_rag",
    level: Optional[str] = None,
    use_json: Optional[bool] = None
) -> logging.Logger:
    """
    Configure the package logger.

    Args:
        name: Logger name (the package root by default)
        level: Level name; defaults to RAG_LOG_LEVEL or INFO
        use_json: JSON output; defaults to RAG_LOG_JSON or False

    Returns:
        The configured logger
    """
    log = logging.getLogger(name)

    if level is None:
        level = os.environ.get("RAG_LOG_LEVEL", "INFO")
    if use_json is None:
        use_json = os.environ.get("RAG_LOG_JSON", "").strip().lower() in _TRUTHY

    log.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Re-running setup swaps the formatter instead of stacking handlers
    handler = next(
        (h for h in log.handlers if getattr(h, "_ondevice_rag_handler", False)),
        None
    )
    if handler is None:
        handler = logging.StreamHandler(sys.stdout)
        handler._ondevice_rag_handler = True
        log.addHandler(handler)

    handler.setFormatter(
        JSONFormatter()
        if use_json
        else logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    )
    return log
