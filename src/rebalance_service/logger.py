import logging
import sys
import json
import os
import glob
import gzip
import shutil
from datetime import datetime
from logging.handlers import TimedRotatingFileHandler
from typing import Optional
from rebalance_config import LoggingConfig
from rebalance_service.context import get_current_event

# Attributes every LogRecord carries; anything else arrived through `extra`
_RESERVED_ATTRS = frozenset([
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname', 'filename', 'module',
    'lineno', 'funcName', 'created', 'msecs', 'relativeCreated', 'thread', 'threadName',
    'processName', 'process', 'taskName', 'getMessage', 'exc_info', 'exc_text',
    'stack_info', 'message', 'event_id', 'user_id',
])


class CompressingTimedRotatingFileHandler(TimedRotatingFileHandler):
    """TimedRotatingFileHandler that compresses rotated files"""

    def doRollover(self):
        super().doRollover()
        # Rotated files sit next to the live log as <name>.<date suffix>
        for rotated in glob.glob(f"{glob.escape(self.baseFilename)}.*"):
            if not rotated.endswith(".gz"):
                self._compress(rotated)

    @staticmethod
    def _compress(path: str):
        try:
            with open(path, "rb") as source, gzip.open(path + ".gz", "wb") as target:
                shutil.copyfileobj(source, target)
            os.remove(path)
        except OSError as e:
            # A failed compression leaves the plain rotated file in place
            print(f"Could not compress rotated log {path}: {e}", file=sys.stderr)


class StructuredFormatter(logging.Formatter):
    """Formatter for structured logging with event_id and user_id support"""

    def __init__(self, output_format: str = 'text'):
        super().__init__()
        self.output_format = output_format

    def format(self, record):
        log_data = {
            'timestamp': datetime.now().strftime('%Y-%m-%d %H:%M:%S %Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage()
        }

        # Records from rebalance_engine carry no extra, take the event from context
        context = _extract_event_properties(None)
        event_id = getattr(record, 'event_id', context.get('event_id'))
        user_id = getattr(record, 'user_id', context.get('user_id'))
        if event_id:
            log_data['event_id'] = event_id
        if user_id:
            log_data['user_id'] = user_id

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                if isinstance(value, datetime):
                    log_data[key] = value.isoformat()
                else:
                    log_data[key] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        if self.output_format == 'json':
            return json.dumps(log_data, default=str)

        base_msg = f"{log_data['timestamp']} - {log_data['logger']} - {log_data['level']} - {log_data['message']}"
        if 'event_id' in log_data:
            base_msg += f" [event_id={log_data['event_id']}]"
        if 'user_id' in log_data:
            base_msg += f" [user_id={log_data['user_id']}]"
        if 'exception' in log_data:
            base_msg += f"\n{log_data['exception']}"
        return base_msg


def setup_logger(name: str) -> logging.Logger:
    # No handlers on individual loggers, records propagate to the root logger
    return logging.getLogger(name)


def configure_root_logger(logging_config: Optional[LoggingConfig] = None, log_file_name: str = 'rebalancer.log'):
    """Configure the root logger to use structured formatting for all logs"""
    logging_config = logging_config or LoggingConfig()
    root_logger = logging.getLogger()

    # Clear existing handlers to avoid duplicates
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, logging_config.level.upper()))

    formatter = StructuredFormatter(logging_config.format)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if logging_config.log_dir:
        # Daily rotation with compression
        os.makedirs(logging_config.log_dir, exist_ok=True)
        file_handler = CompressingTimedRotatingFileHandler(
            filename=os.path.join(logging_config.log_dir, log_file_name),
            when='midnight',
            interval=1,
            backupCount=logging_config.backup_count,
            encoding='utf-8'
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    _configure_third_party_loggers()


def _configure_third_party_loggers():
    """Configure specific third-party library loggers with appropriate levels"""
    # Redis: INFO captures connection issues without debug noise
    logging.getLogger('redis').setLevel(logging.INFO)

    # uvicorn access log: WARNING to reduce request noise
    logging.getLogger('uvicorn.access').setLevel(logging.WARNING)


def _extract_event_properties(event):
    """Extract relevant properties from an event object for logging"""
    if event is None:
        event = get_current_event()

    if event is None:
        return {}

    return {
        'event_id': event.event_id,
        'user_id': event.user_id,
        'event_created_at': event.created_at.isoformat() if isinstance(event.created_at, datetime) else event.created_at
    }


class AppLogger:
    """Logger instance for event-based logging with automatic event context extraction"""

    def __init__(self, name: str):
        self.logger = setup_logger(name)

    def log_debug(self, message: str, event=None):
        self.logger.debug(message, extra=_extract_event_properties(event))

    def log_info(self, message: str, event=None):
        self.logger.info(message, extra=_extract_event_properties(event))

    def log_warning(self, message: str, event=None):
        self.logger.warning(message, extra=_extract_event_properties(event))

    def log_error(self, message: str, event=None):
        self.logger.error(message, extra=_extract_event_properties(event))

    def log_critical(self, message: str, event=None):
        """Log conditions that may have lost data and need an operator"""
        self.logger.critical(message, extra=_extract_event_properties(event))
