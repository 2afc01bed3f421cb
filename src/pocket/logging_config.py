"""Logging setup for the ``pocket`` logger tree.

Every module logs a snake_case event name as the message and puts the
details in ``extra``. Both formatters render those details: JSON output
nests them under ``context``, text output appends them as ``key=value``
pairs. Credentials never reach the output, including inside nested dicts.

``NotePipeline`` calls ``configure_logging`` with the level and format from
``PipelineConfig``; called without arguments it falls back to the
POCKET_LOG_LEVEL and POCKET_LOG_FORMAT environment variables.
"""

import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Optional

__all__ = ["StructuredFormatter", "TextFormatter", "configure_logging", "record_context"]

REDACTED = "[REDACTED]"

SENSITIVE_KEYS = frozenset({
    "password", "token", "secret", "apikey", "api_key",
    "authorization", "credential", "auth", "key", "bearer",
})
SENSITIVE_SUFFIXES = ("_key", "_token", "_secret", "_password")

# Attributes every LogRecord carries; anything else came from ``extra``
_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {"message", "asctime", "taskName"}


def _is_sensitive(key: str) -> bool:
    key = key.lower()
    return key in SENSITIVE_KEYS or key.endswith(SENSITIVE_SUFFIXES)


def _redact(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            k: REDACTED if isinstance(k, str) and _is_sensitive(k) else _redact(v)
            for k, v in value.items()
        }
    return value


def record_context(record: logging.LogRecord) -> dict[str, Any]:
    """Return the ``extra`` fields of a record with credentials redacted."""
    return _redact({
        k: v
        for k, v in record.__dict__.items()
        if k not in _RECORD_ATTRS and not k.startswith("_")
    })


class StructuredFormatter(logging.Formatter):
    """One JSON object per record.

    Keys: timestamp (UTC, 'Z' suffix), level, logger, message, and
    ``context`` / ``exception`` when present.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = record_context(record)
        if context:
            entry["context"] = context
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Single-line output for local development."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s %(levelname)-7s %(name)s %(message)s",
            datefmt="%H:%M:%S",
        )

    def formatMessage(self, record: logging.LogRecord) -> str:
        line = super().formatMessage(record)
        context = record_context(record)
        if not context:
            return line
        pairs = " ".join(f"{k}={v}" for k, v in sorted(context.items()))
        return f"{line} {pairs}"


def configure_logging(level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """Set the level and formatter of the ``pocket`` logger.

    Installs one stream handler on first use and reformats it on later
    calls, so reconfiguring never duplicates output.

    Args:
        level: Level name; defaults to POCKET_LOG_LEVEL, then INFO.
        log_format: "json" or "text"; defaults to POCKET_LOG_FORMAT, then json.
    """
    level = level or os.getenv("POCKET_LOG_LEVEL") or "INFO"
    log_format = log_format or os.getenv("POCKET_LOG_FORMAT") or "json"

    logger = logging.getLogger("pocket")
    log_level = getattr(logging, level.upper(), None)
    logger.setLevel(log_level if isinstance(log_level, int) else logging.INFO)

    if not logger.handlers:
        logger.addHandler(logging.StreamHandler())
    formatter = TextFormatter() if log_format.lower() == "text" else StructuredFormatter()
    for handler in logger.handlers:
        handler.setFormatter(formatter)
