"""Logging configuration.

The manager's numeric log level (0: none, 1: errors, 2: warnings, 3: info,
4: debug) is applied to the ``rpc_manager`` logger hierarchy. Services can
additionally install ``JsonFormatter`` through ``configure_logging`` to emit
one JSON object per record with the structured fields attached via
``extra`` (network, endpoint, attempt, slot, ...).

SECURITY: API keys embedded in RPC urls are redacted from log output;
``redact`` applies the same rule to service responses.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone

PACKAGE_LOGGER = "rpc_manager"

# Numeric manager level -> stdlib level
_LEVELS = {
    0: logging.CRITICAL + 10,
    1: logging.ERROR,
    2: logging.WARNING,
    3: logging.INFO,
    4: logging.DEBUG,
}

# Patterns that should be redacted from log output,
# e.g. https://rpc.example.com/?api-key=abc
_SENSITIVE_PATTERNS = re.compile(
    r"((?:api[-_]?key|apikey|token|secret|password|authorization)[\s]*[=:]\s*)[^\s&\"']+",
    re.IGNORECASE,
)

_STRUCTURED_FIELDS = (
    "network",
    "endpoint",
    "attempt",
    "max_retries",
    "slot",
    "official_slot",
    "timeout_ms",
    "duration_ms",
)


def redact(text: str) -> str:
    """Replace credentials embedded in ``text`` (e.g. ``?api-key=...``) with ``[REDACTED]``."""
    return _SENSITIVE_PATTERNS.sub(r"\1[REDACTED]", text)


def to_logging_level(log_level: int) -> int:
    """Map a 0-4 manager log level onto a stdlib logging level."""
    return _LEVELS[max(0, min(log_level, 4))]


def apply_log_level(log_level: int) -> None:
    """Set the verbosity of every ``rpc_manager`` logger."""
    logging.getLogger(PACKAGE_LOGGER).setLevel(to_logging_level(log_level))


class JsonFormatter(logging.Formatter):
    """Formats log records as JSON with structured fields.

    Each entry contains at minimum: timestamp, level, logger, message.
    Additional fields are copied from the ``extra`` dict on log calls.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": self._sanitize(record.getMessage()),
        }

        for name in _STRUCTURED_FIELDS:
            if hasattr(record, name):
                value = getattr(record, name)
                entry[name] = self._sanitize(value) if isinstance(value, str) else value

        if hasattr(record, "error_reason"):
            entry["error_reason"] = self._sanitize(str(getattr(record, "error_reason")))

        # Exception info
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self._sanitize(self.formatException(record.exc_info))

        return json.dumps(entry, default=str)

    @staticmethod
    def _sanitize(text: str) -> str:
        """Remove sensitive values from log text."""
        return redact(text)


def configure_logging(log_level: int = 2) -> None:
    """Configure the root logger with JSON formatting.

    Parameters
    ----------
    log_level:
        Manager log level, 0 (none) to 4 (debug).
    """
    root = logging.getLogger()
    root.setLevel(to_logging_level(log_level))

    # Remove existing handlers to avoid duplicates
    root.handlers.clear()

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root.addHandler(handler)

    apply_log_level(log_level)
