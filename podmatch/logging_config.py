"""
Logging setup for the API and the ingest CLI.

LOG_FORMAT=json emits one JSON object per line with structured context
(prospect_id, spreadsheet_id, stage ...) lifted out of `extra=`; anything
else gives the human-readable text format. LOG_LEVEL defaults to INFO and an
unknown level name falls back to INFO.
"""
import json
import logging
import os
import sys
from datetime import datetime, timezone

from flask import has_request_context, request

TEXT_FORMAT = '[%(asctime)s] %(levelname)s %(name)s: %(message)s'
TEXT_DATEFMT = '%Y-%m-%d %H:%M:%S'

# Keys callers pass through `extra=` that become top-level JSON fields
CONTEXT_FIELDS = (
    'prospect_id', 'dashboard_id', 'client_id', 'spreadsheet_id',
    'stage', 'duration_seconds', 'request_method', 'request_path',
)

# Chatty at INFO; clamped to WARNING
QUIET_LOGGERS = (
    'urllib3', 'httpcore', 'httpx',
    'openai', 'anthropic',
    'google.auth', 'gspread',
    'rq.worker',
)


class RequestContextFilter(logging.Filter):
    """Tags records emitted while serving a request with its method and path."""

    def filter(self, record):
        if has_request_context():
            record.request_method = request.method
            record.request_path = request.path
        return True


class JSONFormatter(logging.Formatter):

    def format(self, record):
        payload = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        payload.update(
            (key, getattr(record, key)) for key in CONTEXT_FIELDS
            if getattr(record, key, None) is not None
        )
        if record.exc_info and record.exc_info[0] is not None:
            payload['exception'] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _level_from_env():
    level = logging.getLevelName(os.getenv('LOG_LEVEL', 'INFO').upper())
    return level if isinstance(level, int) else logging.INFO


def _formatter_from_env():
    if os.getenv('LOG_FORMAT', 'text').lower() == 'json':
        return JSONFormatter()
    return logging.Formatter(TEXT_FORMAT, datefmt=TEXT_DATEFMT)


def configure_logging(app=None):
    """Replace the root handlers with a single stderr handler. Safe to call repeatedly."""
    level = _level_from_env()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(_formatter_from_env())
    handler.addFilter(RequestContextFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if app is not None:
        app.logger.setLevel(level)
    return handler
