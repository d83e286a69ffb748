"""Structured Logger with JSON Formatting.

Process-level logging for the sandbox. Dashboard activity (the log panel the
integration engineer sees) lives in the monitoring aggregator; this module is
the machine-readable stream written to stdout.
"""

import json
import logging
import os
from datetime import datetime
from typing import Any, Dict, Optional

from server.lib.distributed_tracing import get_correlation_id

# Attribute names every LogRecord carries; anything else came in through extra=
_RESERVED_ATTRS = set(vars(logging.LogRecord('', 0, '', 0, '', None, None)).keys()) | {
    'message',
    'asctime',
}

SENSITIVE_KEYS = frozenset(
    {
        'password',
        'plugin_password',
        'plugin_password_hash',
        'token',
        'access_token',
        'refresh_token',
        'authorization',
    }
)


def redact(context: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Drop credential-bearing keys from a log context.

    Nested dictionaries are filtered as well, since configuration payloads
    are often logged whole.
    """
    cleaned: Dict[str, Any] = {}
    for key, value in (context or {}).items():
        if key.lower() in SENSITIVE_KEYS:
            continue
        if isinstance(value, dict):
            value = redact(value)
        cleaned[key] = value
    return cleaned


def _safe_extra(extra: Dict[str, Any]) -> Dict[str, Any]:
    # logging refuses extras that shadow LogRecord attributes such as 'module'
    return {(f'ctx_{key}' if key in _RESERVED_ATTRS else key): value for key, value in extra.items()}


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON.

        Args:
            record: Log record to format

        Returns:
            JSON-formatted log string
        """
        log_data = {
            'timestamp': datetime.utcnow().isoformat() + 'Z',
            'level': record.levelname,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'request_id': get_correlation_id(),
        }

        extra = {key: value for key, value in vars(record).items() if key not in _RESERVED_ATTRS}
        log_data.update(redact(extra))

        if record.exc_info:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__ if record.exc_info[0] else None,
                'message': str(record.exc_info[1]) if record.exc_info[1] else None,
            }

        return json.dumps(log_data, default=str)


class StructuredLogger:
    """Structured logger with JSON formatting.

    Usage:
        logger = StructuredLogger(__name__)
        logger.info('Configuration saved', configuration_id=3)
        logger.error('Report generation failed', exc_info=True, report_type='errors')
    """

    def __init__(self, name: str):
        """Initialize structured logger.

        Args:
            name: Logger name (typically module name)
        """
        self.logger = logging.getLogger(name)

        log_level = os.getenv('LOG_LEVEL', 'INFO').upper()
        self.logger.setLevel(getattr(logging, log_level, logging.INFO))

        # Children of the package logger share its handler through propagation
        owner = logging.getLogger(name.split('.')[0])
        if not any(isinstance(h.formatter, JSONFormatter) for h in owner.handlers):
            handler = logging.StreamHandler()
            handler.setFormatter(JSONFormatter())
            owner.addHandler(handler)

    def info(self, message: str, **extra: Any) -> None:
        """Log INFO level message."""
        self.logger.info(message, extra=_safe_extra(extra))

    def warning(self, message: str, exc_info: bool = False, **extra: Any) -> None:
        """Log WARNING level message."""
        self.logger.warning(message, exc_info=exc_info, extra=_safe_extra(extra))

    def error(self, message: str, exc_info: bool = False, **extra: Any) -> None:
        """Log ERROR level message.

        Args:
            message: Log message
            exc_info: Include exception traceback
            **extra: Additional context
        """
        self.logger.error(message, exc_info=exc_info, extra=_safe_extra(extra))

    def debug(self, message: str, **extra: Any) -> None:
        """Log DEBUG level message."""
        self.logger.debug(message, extra=_safe_extra(extra))

    def log_event(self, event: str, level: str = 'INFO', context: Optional[Dict[str, Any]] = None) -> None:
        """Log a named event with redacted context.

        Args:
            event: Event name (e.g., "auth.login", "report.generated")
            level: Log level (INFO, WARNING, ERROR, DEBUG)
            context: Additional context dictionary (filtered for sensitive data)
        """
        numeric_level = getattr(logging, level.upper(), logging.INFO)
        self.logger.log(numeric_level, event, extra=_safe_extra({'event': event, **redact(context)}))


def log_request(endpoint: str, method: str, status_code: int, duration_ms: float) -> None:
    """Log an API request with its timing.

    Args:
        endpoint: API endpoint path
        method: HTTP method
        status_code: HTTP status code
        duration_ms: Request duration in milliseconds
    """
    request_logger.info(
        f'{method} {endpoint}',
        endpoint=endpoint,
        method=method,
        status_code=status_code,
        duration_ms=round(duration_ms, 2),
    )


def log_event(event: str, level: str = 'INFO', context: Optional[Dict[str, Any]] = None) -> None:
    """Convenience wrapper around StructuredLogger.log_event for module-level use.

    Example:
        log_event('auth.login', context={'username': 'pos-user', 'password': 'x'})
        # password is dropped before the record is written
    """
    logger.log_event(event, level=level, context=context)


logger = StructuredLogger('server')
request_logger = StructuredLogger('server.requests')
