"""Console and JSON-lines logging with per-operation context fields."""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

# Record attributes copied into JSON lines when an operation set them
CONTEXT_FIELDS = ('stack_name', 'change_set', 'resource_id', 'resource_type', 'operation')

# Libraries that log every HTTP request at INFO
NOISY_LOGGERS = ('boto3', 'botocore', 'urllib3', 's3transfer')


def _record_time(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for the log file."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            'timestamp': _record_time(record).isoformat(timespec='milliseconds').replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        entry.update(
            (name, getattr(record, name)) for name in CONTEXT_FIELDS if hasattr(record, name)
        )
        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Short coloured lines for the terminal, tagged with the stack name."""

    LEVEL_COLORS = {
        logging.DEBUG: '\033[36m',
        logging.INFO: '\033[32m',
        logging.WARNING: '\033[33m',
        logging.ERROR: '\033[31m',
        logging.CRITICAL: '\033[35m',
    }
    RESET = '\033[0m'

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, '')
        stack = f"[{record.stack_name}] " if hasattr(record, 'stack_name') else ''
        line = (f"{_record_time(record).astimezone():%H:%M:%S} "
                f"{color}{record.levelname:<8}{self.RESET} {stack}{record.getMessage()}")

        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(
    log_level: str = 'info',
    log_dir: Optional[Union[str, Path]] = '.stackur/logs'
) -> None:
    """Configure the root logger for a command run.

    Replaces any handlers installed earlier in the process.

    Args:
        log_level: Console level (debug, info, warning, error)
        log_dir: Directory for the daily JSON-lines file; None disables the file
    """
    level = logging.getLevelName(log_level.upper())

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(ConsoleFormatter())
    handlers = [console]

    if log_dir is not None:
        directory = Path(log_dir)
        directory.mkdir(parents=True, exist_ok=True)
        log_file = directory / f"stackur-{datetime.now(timezone.utc):%Y%m%d}.jsonl"

        # The file keeps debug detail whatever the console level
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(JSONFormatter())
        handlers.append(file_handler)

    root_level = logging.DEBUG if log_dir is not None else level
    logging.basicConfig(level=root_level, handlers=handlers, force=True)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Module logger; call with ``__name__``."""
    return logging.getLogger(name)


class LogContext:
    """Attach fields such as ``stack_name`` to every record created inside the block.

    Works through the process-wide record factory, so records from every
    module (providers, the confirmation gate) are tagged too.
    """

    def __init__(self, logger: logging.Logger, **fields: Any):
        self.logger = logger
        self.fields = fields
        self._previous = None

    def __enter__(self) -> "LogContext":
        previous = self._previous = logging.getLogRecordFactory()
        fields = self.fields

        def factory(*args, **kwargs) -> logging.LogRecord:
            record = previous(*args, **kwargs)
            record.__dict__.update(fields)
            return record

        logging.setLogRecordFactory(factory)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._previous is not None:
            logging.setLogRecordFactory(self._previous)
            self._previous = None
