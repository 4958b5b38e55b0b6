"""
Logging setup for Club Tracking.

Features:
- Coloured level names on an interactive console
- JSON lines for files when JSON_LOGS is on
- Size-rotated clubtrack.log plus an errors-only errors.log
- One structured line per backend call (APIRequestLogger)
- Timing decorator for the reconciler's refresh and submit

Nothing here runs on import; the CLI calls init_logging() at start-up.
"""

import os
import sys
import json
import time
import logging
import logging.handlers
from datetime import datetime, timezone
from functools import wraps
from pathlib import Path
from typing import Any, Dict, Optional

LOG_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Every LogRecord has these; anything else arrived through `extra=`
_STANDARD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {'message', 'asctime'}


def record_extras(record: logging.LogRecord) -> Dict[str, Any]:
    return {k: v for k, v in vars(record).items() if k not in _STANDARD_ATTRS}


# ============================================
# FORMATTERS
# ============================================

class JSONFormatter(logging.Formatter):
    """One JSON object per line, with `extra=` fields merged in."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        for key, value in record_extras(record).items():
            entry.setdefault(key, value)

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Plain LOG_FORMAT with the level name coloured when writing to a terminal."""

    LEVEL_COLOURS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[1;31m',
    }
    RESET = '\033[0m'

    def __init__(self, use_colour: bool = True):
        super().__init__(LOG_FORMAT, DATE_FORMAT)
        self.use_colour = use_colour

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        colour = self.LEVEL_COLOURS.get(record.levelname)
        if not self.use_colour or not colour:
            return text
        return text.replace(record.levelname, f"{colour}{record.levelname}{self.RESET}", 1)


# ============================================
# SETUP
# ============================================

def _rotating_handler(path: Path, level: int, formatter: logging.Formatter,
                      max_bytes: int, backup_count: int) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=max_bytes, backupCount=backup_count, encoding='utf-8'
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    level: str = "INFO",
    json_logs: bool = False,
    log_dir: Optional[str] = None,
    enable_console: bool = True,
    enable_file: bool = False,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
) -> logging.Logger:
    """
    Replace the root logger's handlers.

    Args:
        level: Root level name (DEBUG, INFO, ...)
        json_logs: JSON lines instead of LOG_FORMAT in clubtrack.log
        log_dir: Where log files go (default ./logs, created if missing)
        enable_console: Log to stderr
        enable_file: Write clubtrack.log and errors.log
        max_bytes: Rotation size per file
        backup_count: Rotated files kept

    Returns:
        The root logger
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for handler in list(root.handlers):
        root.removeHandler(handler)

    if enable_console:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(ConsoleFormatter(use_colour=sys.stderr.isatty()))
        root.addHandler(console)

    if enable_file:
        directory = Path(log_dir or os.path.join(os.getcwd(), 'logs'))
        directory.mkdir(parents=True, exist_ok=True)

        main_formatter = JSONFormatter() if json_logs else logging.Formatter(LOG_FORMAT, DATE_FORMAT)
        root.addHandler(_rotating_handler(
            directory / "clubtrack.log", logging.DEBUG, main_formatter, max_bytes, backup_count
        ))
        # Failed submits end up here regardless of json_logs
        root.addHandler(_rotating_handler(
            directory / "errors.log", logging.ERROR, JSONFormatter(), max_bytes, backup_count
        ))

    return root


_initialized = False


def init_logging(force: bool = False):
    """Apply setup_logging from Config once per process."""
    global _initialized
    if _initialized and not force:
        return

    from ..config.settings import Config
    setup_logging(
        level=Config.LOG_LEVEL,
        json_logs=Config.JSON_LOGS,
        log_dir=Config.LOG_DIR,
        enable_file=Config.JSON_LOGS,
    )
    _initialized = True


# ============================================
# TIMING
# ============================================

def log_execution_time(logger: Optional[logging.Logger] = None):
    """
    Log how long the wrapped call took; failures are logged and re-raised.

    Usage:
        @log_execution_time()
        def refresh(self, date): ...
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            log = logger or logging.getLogger(func.__module__)
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                elapsed = time.perf_counter() - started
                log.warning(
                    f"{func.__name__} failed after {elapsed:.3f}s: {e}",
                    extra={"duration_s": round(elapsed, 3), "error_type": type(e).__name__}
                )
                raise
            elapsed = time.perf_counter() - started
            log.debug(f"{func.__name__} took {elapsed:.3f}s", extra={"duration_s": round(elapsed, 3)})
            return result

        return wrapper
    return decorator


# ============================================
# BACKEND CALLS
# ============================================

class APIRequestLogger:
    """Structured log line per backend call, under clubtrack.api.<name>."""

    def __init__(self, api_name: str):
        self.api_name = api_name
        self.logger = logging.getLogger(f"clubtrack.api.{api_name}")

    def log_request(
        self,
        method: str,
        endpoint: str,
        status: Optional[int],
        elapsed_ms: Optional[float],
        records: Optional[int] = None,
        error: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
    ):
        fields = {
            "api": self.api_name,
            "method": method,
            "endpoint": endpoint,
            "status": status,
            "elapsed_ms": elapsed_ms,
            "records": records,
            "params": params,
        }
        if error:
            fields["error"] = error
            self.logger.error(f"{method} {endpoint} -> {status}: {error}", extra=fields)
        else:
            self.logger.info(f"{method} {endpoint} -> {status} in {elapsed_ms}ms", extra=fields)
