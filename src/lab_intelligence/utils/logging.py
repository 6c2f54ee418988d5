# ============================================================================
# src/lab_intelligence/utils/logging.py
# ============================================================================
"""
Logging setup for the lab intelligence engine.

Modules log through logging.getLogger(__name__). setup_logging() wires the
root logger once, from LoggingSettings unless overridden. Per-report context
(report_id, provider_id) travels on records via LogAdapter and is emitted by
JsonFormatter.
"""

import functools
import json
import logging
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

CONTEXT_FIELDS = ('report_id', 'provider_id', 'task_id')

# Chatty third-party loggers kept at WARNING unless DEBUG is requested
NOISY_LOGGERS = ('aiohttp', 'asyncio')


def setup_logging(
    level: Optional[str] = None,
    log_file: Optional[Path] = None,
    format_json: Optional[bool] = None
) -> None:
    """
    Configure the root logger.

    Args:
        level: Logging level name; defaults to LOG_LEVEL
        log_file: Optional file path; defaults to LOG_FILE
        format_json: Emit JSON lines; defaults to LOG_JSON
    """
    from ..config import logging_settings

    level = (level or logging_settings.LOG_LEVEL).upper()
    log_file = log_file if log_file is not None else logging_settings.LOG_FILE
    if format_json is None:
        format_json = logging_settings.LOG_JSON

    log_level = logging.getLevelName(level)
    if not isinstance(log_level, int):
        raise ValueError(f"Unknown log level: {level}")

    if format_json:
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(level=log_level, handlers=handlers, force=True)

    if log_level > logging.DEBUG:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


class JsonFormatter(logging.Formatter):
    """One JSON object per record, context fields included."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        for key in CONTEXT_FIELDS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        return json.dumps(log_data, default=str)


def log_performance(logger: logging.Logger, operation: str):
    """
    Decorator that logs how long a synchronous step took.

    Failures are logged with their duration and re-raised.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                logger.error(f"{operation} failed after {time.perf_counter() - start:.3f}s: {e}")
                raise
            logger.info(f"{operation} completed in {time.perf_counter() - start:.3f}s")
            return result

        return wrapper
    return decorator


class LogAdapter(logging.LoggerAdapter):
    """Merges the adapter's context into every record's extra fields."""

    def process(self, msg, kwargs):
        kwargs['extra'] = {**self.extra, **kwargs.get('extra', {})}
        return msg, kwargs
