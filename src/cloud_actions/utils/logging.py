"""Logging setup: colored console lines on stderr, optional JSON-lines file."""

import logging
import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Optional


# Record attributes LogContext may set, in display order
CONTEXT_FIELDS = ('guid', 'kind', 'operation', 'resource_id')

NOISY_LOGGERS = ('boto3', 'botocore', 'urllib3')


def record_context(record: logging.LogRecord) -> Dict[str, Any]:
    """Structured fields attached to a record, skipping the absent ones."""
    return {name: getattr(record, name) for name in CONTEXT_FIELDS if hasattr(record, name)}


def _record_time(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for the log file."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            'timestamp': _record_time(record).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        entry.update(record_context(record))

        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Human-readable console line: ``time LEVEL [guid kind/operation] message``."""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def __init__(self, color: bool = True):
        super().__init__()
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        level = f"{record.levelname:8}"
        if self.color and record.levelname in self.COLORS:
            level = f"{self.COLORS[record.levelname]}{level}{self.RESET}"

        line = f"{_record_time(record):%H:%M:%S} {level} {self._tag(record)}{record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line

    @staticmethod
    def _tag(record: logging.LogRecord) -> str:
        context = record_context(record)
        parts = []
        if 'guid' in context:
            parts.append(str(context['guid']))
        if 'kind' in context:
            action = context['kind']
            if 'operation' in context:
                action = f"{action}/{context['operation']}"
            parts.append(action)
        return f"[{' '.join(parts)}] " if parts else ""


def setup_logging(
    log_level: str = 'info',
    log_dir: Optional[str] = None,
    quiet: Iterable[str] = NOISY_LOGGERS
) -> None:
    """Configure the root logger.

    stdout is left alone; it carries the action output payload.

    Args:
        log_level: Console level (debug, info, warning, error)
        log_dir: Directory for daily JSON-lines files; no file logging if None
        quiet: Library loggers capped at WARNING
    """
    level = getattr(logging, log_level.upper())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(ConsoleFormatter(color=sys.stderr.isatty()))
    root_logger.addHandler(console_handler)
    root_logger.setLevel(level)

    if log_dir:
        directory = Path(log_dir)
        directory.mkdir(parents=True, exist_ok=True)
        today = datetime.now(timezone.utc).strftime('%Y%m%d')
        file_handler = logging.FileHandler(directory / f"cloud-actions-{today}.jsonl")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(file_handler)
        root_logger.setLevel(logging.DEBUG)

    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class LogContext:
    """Stamp structured fields on every record created inside the block.

    Contexts nest; an inner context overrides fields of the outer one and
    the previous record factory is restored on exit.
    """

    def __init__(self, **fields: Any):
        self.fields = {key: value for key, value in fields.items() if value is not None}
        self._previous = None

    def __enter__(self) -> "LogContext":
        previous = logging.getLogRecordFactory()
        fields = self.fields

        def factory(*args, **kwargs):
            record = previous(*args, **kwargs)
            record.__dict__.update(fields)
            return record

        self._previous = previous
        logging.setLogRecordFactory(factory)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._previous is not None:
            logging.setLogRecordFactory(self._previous)
            self._previous = None
