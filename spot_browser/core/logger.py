"""
Logging configuration for spot-browser.

This module sets up the logging system with multiple outputs:
    - Console: colored, tqdm/rich-compatible one-line records
    - log_full_<timestamp>.log: every record (DEBUG and above)
    - log_errors_<timestamp>.log: only ERROR and CRITICAL records

Usage:
    from spot_browser.core.logger import setup_logging, get_logger

    setup_logging(log_dir)  # Call once at startup
    logger = get_logger(__name__)  # Module-level logger

    logger.info("Loading saved tracks")
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import TextIO

from tqdm import tqdm


FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(threadName)s | %(name)s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are far too chatty at DEBUG
NOISY_LOGGERS = ("spotipy", "urllib3", "PIL", "requests")


class Colors:
    """ANSI color codes for terminal output."""
    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"
    BOLD = "\033[1m"


class ColoredConsoleFormatter(logging.Formatter):
    """
    Formatter that prefixes each console line with a colored level name.

    Colors:
        - DEBUG: Blue
        - INFO: Green
        - WARNING: Yellow
        - ERROR: Red
        - CRITICAL: Bold Red
    """

    LEVEL_COLORS = {
        logging.DEBUG: Colors.BLUE,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.BOLD + Colors.RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, Colors.WHITE)
        return f"{color}{record.levelname}{Colors.RESET}: {record.getMessage()}"


class TqdmLoggingHandler(logging.Handler):
    """
    Console handler that writes through tqdm.write().

    The browse command shows a progress bar while pages arrive from the
    worker pool; writing records through tqdm keeps the bar on its own line
    instead of being torn apart by interleaved log output.
    """

    def __init__(self, stream: TextIO = sys.stderr) -> None:
        super().__init__()
        self.stream = stream

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            tqdm.write(msg, file=self.stream)
        except Exception:
            self.handleError(record)


class ErrorOnlyFilter(logging.Filter):
    """
    Filter that only allows ERROR and CRITICAL level records.

    Example:
        handler.addFilter(ErrorOnlyFilter())
    """

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.ERROR


def setup_logging(log_dir: Path, console_level: int = logging.INFO) -> None:
    """
    Configure the logging system for the application.

    Call once at startup, after the settings are loaded and before the
    worker pool, token refresher or callback listener threads start.

    Args:
        log_dir: Directory where the per-run log files are created.
                 Created if it does not exist.
        console_level: Minimum level printed to the console.

    Behavior:
        1. Create log_dir
        2. Configure root logger level to DEBUG, drop existing handlers
        3. Console handler (TqdmLoggingHandler, colored) at console_level
        4. Full log file handler at DEBUG
        5. Error-only file handler (ErrorOnlyFilter)
        6. Lower third-party loggers to WARNING
    """
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    console_handler = TqdmLoggingHandler()
    console_handler.setLevel(console_level)
    console_handler.setFormatter(ColoredConsoleFormatter())
    root_logger.addHandler(console_handler)

    full_log_path = log_dir / f"log_full_{timestamp}.log"
    full_handler = logging.FileHandler(full_log_path, mode="w", encoding="utf-8")
    full_handler.setLevel(logging.DEBUG)
    full_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
    root_logger.addHandler(full_handler)

    error_log_path = log_dir / f"log_errors_{timestamp}.log"
    error_handler = logging.FileHandler(error_log_path, mode="w", encoding="utf-8")
    error_handler.setLevel(logging.DEBUG)  # ErrorOnlyFilter does the restriction
    error_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
    error_handler.addFilter(ErrorOnlyFilter())
    root_logger.addHandler(error_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: The logger name, typically __name__ of the calling module.

    Returns:
        logging.Logger: A logger configured by setup_logging().

    Note:
        Loggers obtained before setup_logging() is called have no handlers
        of their own; records propagate to whatever the root has.
    """
    return logging.getLogger(name)


def log_api_failure(
    logger: logging.Logger,
    loader_name: str,
    error: Exception,
    attempt: int = 0
) -> None:
    """
    Log a failed page fetch with structured extra fields.

    The extra fields (api_error_kind, api_error_status, loader_name)
    end up on the LogRecord so file handlers and tests can inspect them.

    Args:
        logger: The logger to use for the message.
        loader_name: Display name of the loader, e.g. "saved tracks".
        error: The failure raised by the transport.
        attempt: Zero-based retry count of the failed step.
    """
    status = getattr(error, "http_status", None)
    logger.warning(
        f"Loading {loader_name} failed (attempt {attempt + 1}): {error}",
        extra={
            "api_error_kind": type(error).__name__,
            "api_error_status": status,
            "loader_name": loader_name,
        }
    )


def shutdown_logging() -> None:
    """
    Flush, close and remove every handler attached to the root logger.

    Typically called from a finally block at CLI exit.
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        try:
            handler.flush()
            handler.close()
        except Exception:
            pass
        root_logger.removeHandler(handler)
