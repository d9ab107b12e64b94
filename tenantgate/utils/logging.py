"""
Logging Configuration

Structured logging setup with JSON output for production.

Every handler installed here carries a RedactionFilter: JWT-shaped strings
and refresh_token values are masked before a record is formatted, so a
credential that ends up in a message or an extra field never reaches the
log stream.
"""
import logging
import re
import sys
from typing import Any, Dict
import json
from datetime import datetime

REDACTED = "[REDACTED]"

# header.payload.signature, base64url segments
_JWT_RE = re.compile(r"eyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+")
_REFRESH_RE = re.compile(r"(refresh_token[\"']?\s*[:=]\s*[\"']?)[^\s\"';,]+", re.IGNORECASE)

_SENSITIVE_KEYS = {"password", "refresh_token", "access_token", "token", "authorization", "cookie"}

# Extra fields copied into the JSON payload when present on the record
_CONTEXT_FIELDS = (
    "tenant_id",
    "user_id",
    "request_id",
    "security_event",
    "event_type",
    "scope",
    "actor_user_id",
    "entity_type",
    "entity_id",
    "meta",
    "path",
    "method",
)


def redact(value: str) -> str:
    value = _JWT_RE.sub(REDACTED, value)
    return _REFRESH_RE.sub(lambda m: m.group(1) + REDACTED, value)


class RedactionFilter(logging.Filter):
    """Masks credentials in the message, its args and string extras."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = redact(record.msg)
        if record.args:
            if isinstance(record.args, dict):
                record.args = {k: self._clean(k, v) for k, v in record.args.items()}
            else:
                record.args = tuple(self._clean(None, a) for a in record.args)
        for key in _SENSITIVE_KEYS:
            if key in record.__dict__:
                record.__dict__[key] = REDACTED
        return True

    @staticmethod
    def _clean(key, value):
        if key in _SENSITIVE_KEYS:
            return REDACTED
        if isinstance(value, str):
            return redact(value)
        return value


class JSONFormatter(logging.Formatter):
    """
    JSON log formatter for structured logging.

    Makes logs machine-readable for log aggregation systems.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.utcnow().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = redact(self.formatException(record.exc_info))

        for field in _CONTEXT_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = "INFO", json_format: bool = False) -> None:
    """
    Configure application logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON format for structured logging

    NOTE: Call this once at application startup.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper()))

    # Remove existing handlers to avoid duplicates
    root_logger.handlers.clear()

    # Console handler
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RedactionFilter())

    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        # Human-readable format for development
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        handler.setFormatter(formatter)

    root_logger.addHandler(handler)

    # Reduce noise from noisy libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("passlib").setLevel(logging.ERROR)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance.

    Use this instead of logging.getLogger() for consistency.
    """
    return logging.getLogger(name)


# Security event logging
def log_security_event(event_type: str, details: Dict[str, Any], logger: logging.Logger) -> None:
    """
    Log security-related events.

    Event types used by the services:
    - auth.login / auth.login_failed / auth.logout / auth.logout_all
    - auth.refresh / auth.refresh_reuse_detected
    - invite.created / invite.accepted / invite.revoked
    - membership.role_changed / membership.status_changed
    - tenant.created / tenant.archived / tenant.deleted / tenant.purged
    """
    log_data = {
        "security_event": True,
        "event_type": event_type,
        **details
    }

    logger.warning(f"SECURITY EVENT: {event_type}", extra=log_data)
