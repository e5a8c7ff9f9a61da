"""
Structured logging configuration.

Called once from create_app() and from leadloop.worker.main(). Supports
text (human-readable) and JSON formats via LOG_FORMAT env var. LOG_LEVEL
defaults to INFO.

Records can carry run context through `extra=`: batch_id, query_id, lead_id
and attempt_id land as top-level JSON keys, and anything logged inside an
RQ job is stamped with that job's id.
"""
import json
import logging
import os
import sys
from datetime import datetime, timezone

from rq import get_current_job

CONTEXT_FIELDS = ('job_id', 'batch_id', 'query_id', 'lead_id', 'attempt_id')


class JobContextFilter(logging.Filter):
    """Sets record.job_id to the running RQ job's id (None outside a job)."""

    def filter(self, record):
        if getattr(record, 'job_id', None) is None:
            job = get_current_job()
            record.job_id = job.id if job is not None else None
        return True


class JSONFormatter(logging.Formatter):
    """Single-line JSON log formatter for production log aggregators."""

    def format(self, record):
        entry = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry)


class TextFormatter(logging.Formatter):
    """Plain lines; job and batch ids appended in brackets when present."""

    def __init__(self):
        super().__init__('[%(asctime)s] %(levelname)s %(name)s - %(message)s', datefmt='%Y-%m-%d %H:%M:%S')

    def format(self, record):
        line = super().format(record)
        tags = [f'{key}={getattr(record, key)}' for key in ('job_id', 'batch_id')
                if getattr(record, key, None) is not None]
        return f"{line} [{' '.join(tags)}]" if tags else line


# Third-party loggers that are noisy at INFO
_NOISY_LOGGERS = [
    'urllib3',
    'openai',
    'httpcore',
    'httpx',
    'rq.worker',
]


def configure_logging(app=None):
    """
    Set up root logger with format/level from env vars.

    Environment variables:
        LOG_LEVEL:  Python log level name (default: INFO)
        LOG_FORMAT: "text" (default) or "json"
    """
    level = logging.getLevelName(os.getenv('LOG_LEVEL', 'INFO').upper())
    if not isinstance(level, int):
        level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.addFilter(JobContextFilter())
    if os.getenv('LOG_FORMAT', 'text').lower() == 'json':
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(TextFormatter())
    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if app is not None:
        # app.logger defers to the root handler
        app.logger.handlers.clear()
        app.logger.propagate = True
