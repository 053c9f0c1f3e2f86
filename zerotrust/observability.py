"""
Structured logging for the zero trust engine.

Thin structlog setup over the standard library: JSON output for log
shippers, a console renderer for local use, and a processor that keeps
session identifiers and credentials out of log lines.
"""

import logging
import sys
from typing import Any, Dict

import structlog


class RedactionProcessor:
    """Replace values of sensitive keys before rendering."""

    SENSITIVE_FIELDS = {
        'password', 'secret', 'token', 'credential',
        'authorization', 'cookie', 'session_id', 'api_key'
    }

    def __call__(self, logger, method_name, event_dict):
        return self._sanitize(event_dict)

    def _sanitize(self, data: Dict[str, Any]) -> Dict[str, Any]:
        sanitized = {}
        for key, value in data.items():
            if any(sensitive in key.lower() for sensitive in self.SENSITIVE_FIELDS):
                sanitized[key] = "[REDACTED]"
            elif isinstance(value, dict):
                sanitized[key] = self._sanitize(value)
            else:
                sanitized[key] = value
        return sanitized


def configure_logging(level: str = "INFO", format_type: str = "console") -> None:
    """
    Set up structlog and stdlib logging.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: ``json`` or ``console``
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        RedactionProcessor(),
    ]
    if format_type == "json":
        processors.append(structlog.processors.JSONRenderer(default=str))
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=log_level)
    logging.getLogger().setLevel(log_level)


def get_logger(name: str):
    """Get a structlog logger bound to ``name``."""
    return structlog.get_logger(name)
