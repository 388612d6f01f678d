"""
Structured logging

  - JSON lines in production / staging, a compact human format in development
  - request id, caller and inbound Host attached to every record via a filter
  - masking of e-mails, credentials and DNS challenge tokens before output
"""

import json
import logging
import re
import sys
import uuid
from contextvars import ContextVar
from typing import Any, Optional

from app.config import settings

request_id_ctx: ContextVar[str] = ContextVar("request_id", default="-")
user_id_ctx: ContextVar[str] = ContextVar("user_id", default="-")
host_ctx: ContextVar[str] = ContextVar("host", default="-")

# structured fields passed with ``extra=`` that are kept in JSON output
_EXTRA_FIELDS = ("hostname", "domain_id", "outcome", "attempt", "duration_ms", "statement", "threshold_ms")


def generate_request_id() -> str:
    return uuid.uuid4().hex[:8]


# ── Masking ──

_EMAIL_RE = re.compile(r"([a-zA-Z0-9._%+-]+)@([a-zA-Z0-9.-]+\.[a-zA-Z]{2,})")

# <platform>-verify-<hex>: the namespace tag and first 4 hex chars stay readable
_CHALLENGE_RE = re.compile(r"\b([a-z0-9]+-verify-)([0-9a-f]{4})[0-9a-f]+\b")

_CREDENTIAL_RE = re.compile(r'("?(?:password|secret|authorization)"?\s*[:=]\s*)"[^"]*"', re.I)
_BEARER_RE = re.compile(r"(Bearer\s+)[A-Za-z0-9._-]+")


def _mask_email(match: re.Match) -> str:
    local, domain = match.group(1), match.group(2)
    if len(local) <= 2:
        return f"{local[0]}***@{domain}"
    return f"{local[0]}***{local[-1]}@{domain}"


def mask_pii(text: str) -> str:
    """Mask e-mails, credentials and challenge tokens in a log line."""
    text = _CREDENTIAL_RE.sub(r'\1"***"', text)
    text = _BEARER_RE.sub(r"\1***", text)
    text = _EMAIL_RE.sub(_mask_email, text)
    return _CHALLENGE_RE.sub(r"\1\2***", text)


class LogContextFilter(logging.Filter):
    """Copies the request context variables onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_ctx.get()
        record.user_id = user_id_ctx.get()
        record.host = host_ctx.get()
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S") + f".{int(record.msecs):03d}Z",
            "level": record.levelname,
            "logger": record.name,
            "message": mask_pii(record.getMessage()),
            "request_id": getattr(record, "request_id", "-"),
            "user_id": getattr(record, "user_id", "-"),
            "host": getattr(record, "host", "-"),
        }
        for field in _EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                entry[field] = value
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)

        entry = {k: v for k, v in entry.items() if v not in ("", "-")}
        return json.dumps(entry, ensure_ascii=False, default=str)


class HumanFormatter(logging.Formatter):
    FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-22s | [%(request_id)s] %(message)s"

    def __init__(self):
        super().__init__(self.FORMAT, datefmt="%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "request_id"):
            record.request_id = "-"
        return mask_pii(super().format(record))


def setup_logging(level: Optional[str] = None, json_logs: Optional[bool] = None) -> None:
    """Install one stdout handler on the root logger.

    ``level`` / ``json_logs`` default to LOG_LEVEL / LOG_JSON, and otherwise
    to the environment (JSON + INFO outside development).
    """
    if json_logs is None:
        json_logs = settings.LOG_JSON if settings.LOG_JSON is not None else not settings.is_development
    level = level or settings.LOG_LEVEL or ("DEBUG" if settings.is_development else "INFO")

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(LogContextFilter())
    handler.setFormatter(JSONFormatter() if json_logs else HumanFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level.upper())

    for name in ("uvicorn.access", "httpcore", "httpx", "asyncio", "celery", "kombu", "dns"):
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.INFO)
