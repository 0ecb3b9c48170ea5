"""
Logging setup for the command-line tools

Library modules only call ``logging.getLogger(__name__)``; the CLIs call
``setup_logging`` once at startup.
"""
import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Optional


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for log shippers"""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, ensure_ascii=False)


def setup_logging(level: Optional[str] = None, json_format: Optional[bool] = None) -> logging.Logger:
    """
    Configure the ``expense_classifier`` logger

    Args:
        level: Log level name (default: LOG_LEVEL env var, else WARNING)
        json_format: JSON lines instead of plain text (default: LOG_FORMAT=json)

    Returns:
        The package logger
    """
    level = (level or os.getenv('LOG_LEVEL', 'WARNING')).upper()
    if json_format is None:
        json_format = os.getenv('LOG_FORMAT', '').lower() == 'json'

    handler = logging.StreamHandler(sys.stderr)
    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)-8s %(name)s | %(message)s', '%H:%M:%S'))

    logger = logging.getLogger('expense_classifier')
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level, logging.WARNING))
    logger.propagate = False
    return logger
