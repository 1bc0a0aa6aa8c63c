"""Structured logging setup for the clinic push service.

Every log line includes: timestamp, level, module tag, message, and structured data.
Secrets (VAPID keys, subscription key material) are redacted from log output.

Usage:
    from clinic.common.logging import get_logger
    logger = get_logger("DISPATCH")
    logger.info("Dispatch finished", extra={"data": {"sent": 3, "pruned": 1}})
"""

from __future__ import annotations

import json
import logging
import re
import sys
from datetime import UTC, datetime

MODULE_TAGS = {
    "PUSH",
    "DISPATCH",
    "STORE",
    "CLIENT",
    "WORKER",
    "NUDGE",
    "API",
    "SETTINGS",
    "SYSTEM",
    "TEST",
}

# Values of JSON keys that look like key material are replaced.
_SECRET_KEY_PATTERN = re.compile(
    r'"([^"]*(?:key|secret|password|token|private|pem|p256dh|auth)[^"]*)":\s*"([^"]*)"',
    re.IGNORECASE,
)


def _redact_secrets(text: str) -> str:
    """Replace values of secret-looking keys with [REDACTED] in a string."""
    return _SECRET_KEY_PATTERN.sub(r'"\1": "[REDACTED]"', text)


def short_endpoint(endpoint: str, length: int = 60) -> str:
    """Truncate a push endpoint URL for logging."""
    if len(endpoint) <= length:
        return endpoint
    return endpoint[:length] + "..."


class StructuredFormatter(logging.Formatter):
    """Formats log records as structured, human-readable lines.

    Output format:
        2025-03-10T14:30:00Z | INFO | DISPATCH | Dispatch finished | {"sent": 3}
    """

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")
        level = record.levelname
        module_tag = getattr(record, "module_tag", "SYSTEM")

        from clinic.common.middleware import request_id_var

        rid = request_id_var.get("")

        data = getattr(record, "data", None)
        if data is not None:
            try:
                data_str = _redact_secrets(json.dumps(data, default=str))
            except (TypeError, ValueError):
                data_str = str(data)
        else:
            data_str = ""

        message = _redact_secrets(record.getMessage())

        parts = [timestamp, level]
        if rid:
            parts.append(f"rid={rid[:8]}")
        parts.extend([module_tag, message])
        if data_str:
            parts.append(data_str)

        return " | ".join(parts)


class ModuleTagLogger(logging.LoggerAdapter):
    """Logger adapter that injects module_tag and supports structured data."""

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        extra = kwargs.get("extra", {})
        extra["module_tag"] = self.extra.get("module_tag", "SYSTEM")
        kwargs["extra"] = extra
        return msg, kwargs


_loggers: dict[str, ModuleTagLogger] = {}


def get_logger(module_tag: str) -> ModuleTagLogger:
    """Get a structured logger with the given module tag.

    Args:
        module_tag: One of the MODULE_TAGS (PUSH, DISPATCH, STORE, etc.)

    Returns:
        A logger adapter that injects the module tag into every log line.
    """
    if module_tag in _loggers:
        return _loggers[module_tag]

    logger = logging.getLogger(f"clinic.{module_tag.lower()}")

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)
        logger.setLevel(logging.DEBUG)
        logger.propagate = False

    adapter = ModuleTagLogger(logger, {"module_tag": module_tag})
    _loggers[module_tag] = adapter
    return adapter
