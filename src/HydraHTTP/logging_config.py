"""
Structured Logging Utilities

This module centralizes logging setup for the HydraHTTP adapter. Library
modules only ever call ``logging.getLogger(__name__)`` and attach structured
context through ``extra=``; this module turns those records into console
lines or JSON objects and masks credentials (proxy user/password strings,
client key passwords, authorization headers) before anything is emitted.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Dict, Optional, TextIO

from HydraHTTP.settings import LogFormat, LoggingSettings, get_settings

__all__ = ["JSONFormatter", "mask_sensitive_data", "setup_logging"]

LOGGER_NAME = "HydraHTTP"

_SENSITIVE_KEYS = {
    "authorization",
    "proxy-authorization",
    "proxyuserpwd",
    "keypasswd",
    "password",
    "client_cert_passwd",
    "client_certificate_password",
    "token",
    "secret",
}

# Attributes every LogRecord carries; anything else arrived through ``extra=``.
_RESERVED_ATTRS = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


def mask_sensitive_data(payload: Dict[str, object]) -> Dict[str, object]:
    """Remove secrets from structured payloads prior to logging.

    Nested mappings (for example header maps) are masked recursively.

    Examples:
        >>> mask_sensitive_data({"proxyuserpwd": "user:pw", "status": 200})
        {'proxyuserpwd': '***masked***', 'status': 200}
    """
    masked: Dict[str, object] = {}
    for key, value in payload.items():
        if str(key).lower() in _SENSITIVE_KEYS:
            masked[key] = "***masked***"
        elif isinstance(value, dict):
            masked[key] = mask_sensitive_data(value)
        else:
            masked[key] = value
    return masked


def _extra_fields(record: logging.LogRecord) -> Dict[str, object]:
    return {key: value for key, value in vars(record).items() if key not in _RESERVED_ATTRS}


class JSONFormatter(logging.Formatter):
    """Formatter emitting one JSON object per record.

    Examples:
        >>> formatter = JSONFormatter()
        >>> isinstance(formatter.format(logging.makeLogRecord({'msg': 'test'})), str)
        True
    """

    def format(self, record: logging.LogRecord) -> str:
        now = datetime.fromtimestamp(record.created, tz=timezone.utc)
        log_obj: Dict[str, object] = {
            "timestamp": now.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        log_obj.update(_extra_fields(record))
        if record.exc_info:
            log_obj["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(mask_sensitive_data(log_obj), default=str)


class ConsoleFormatter(logging.Formatter):
    """Human readable formatter appending masked ``extra`` context."""

    def __init__(self) -> None:
        super().__init__("%(levelname)s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extra = mask_sensitive_data(_extra_fields(record))
        if extra:
            context = " ".join(f"{key}={value}" for key, value in sorted(extra.items()))
            line = f"{line} [{context}]"
        return line


def setup_logging(
    settings: Optional[LoggingSettings] = None, stream: Optional[TextIO] = None
) -> logging.Logger:
    """Configure the ``HydraHTTP`` logger hierarchy.

    Handlers installed by a previous call are replaced, so the function is
    safe to call repeatedly.

    Args:
        settings: Level and format; defaults to the process settings.
        stream: Output stream; defaults to ``sys.stderr``.

    Returns:
        The configured package logger.
    """
    settings = settings or get_settings().logging
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(settings.level_number)

    for handler in list(logger.handlers):
        if getattr(handler, "_hydra_managed", False):
            logger.removeHandler(handler)
            handler.close()

    handler = logging.StreamHandler(stream or sys.stderr)
    if settings.format is LogFormat.JSON:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(ConsoleFormatter())
    handler._hydra_managed = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.propagate = True
    return logger
