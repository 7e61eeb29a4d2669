"""
Logging configuration for lossless-mirror.

This module sets up the logging system with up to three outputs:
    - Console: colored, compact messages written through tqdm.write() so
      that they appear above the progress bar instead of breaking it
    - Log file (optional): complete log of all events (DEBUG and above),
      rotated by size
    - failures.log (next to the log file): one entry per failed
      conversion with source, target and reason

Usage:
    from lossless_mirror.core.logger import setup_logging, get_logger

    setup_logging(level="INFO", log_file=Path("lossless-mirror.log"))
    logger = get_logger(__name__)

    logger.info("Starting conversion")
    log_conversion_failure(logger, source, target, "ffmpeg exited with status 1")
"""

import logging
import logging.handlers
import re
import sys
import threading
from pathlib import Path
from typing import TextIO

import colorama
from colorama import Back, Fore, Style
from tqdm import tqdm


FAILURES_FILENAME = "failures.log"

FILE_LOG_FORMAT = "%(asctime)s | %(name)-36s | %(levelname)-8s | %(threadName)-12s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

CONSOLE_LOG_FORMAT = "%(levelname)s: %(message)s"

# Third-party loggers that are only interesting in the log file
_NOISY_LOGGERS = ("PIL", "pydub.converter")

colorama.just_fix_windows_console()


class TqdmLoggingHandler(logging.Handler):
    """
    Logging handler that writes to the console without breaking tqdm progress bars.

    tqdm redraws its bar in place with carriage returns; a plain
    StreamHandler writing to the same terminal leaves fragments of the bar
    behind. tqdm.write() clears the bar, prints the message and redraws it.

    Attributes:
        stream: The output stream (defaults to sys.stderr).
    """

    def __init__(self, stream: TextIO | None = None) -> None:
        super().__init__()
        self.stream = stream

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            tqdm.write(msg, file=self.stream or sys.stderr)
            self.flush()
        except Exception:
            self.handleError(record)


class ColoredFormatter(logging.Formatter):
    """Formatter that colors the level name for the console."""

    COLORS = {
        "DEBUG": Fore.CYAN,
        "INFO": Fore.GREEN,
        "WARNING": Fore.YELLOW,
        "ERROR": Fore.RED,
        "CRITICAL": Fore.RED + Back.WHITE + Style.BRIGHT,
    }

    def __init__(self, fmt: str = CONSOLE_LOG_FORMAT, use_colors: bool = True) -> None:
        super().__init__(fmt)
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        if not self.use_colors or record.levelname not in self.COLORS:
            return super().format(record)

        # Work on a copy so the file handler still sees the plain level name
        record_copy = logging.makeLogRecord(record.__dict__)
        record_copy.levelname = f"{self.COLORS[record.levelname]}{record.levelname}{Style.RESET_ALL}"
        return super().format(record_copy)


class FailedConversionHandler(logging.Handler):
    """
    Handler that collects failed conversions into a report file.

    Only records carrying the 'failed_source' extra field are written;
    everything else is ignored. Each entry has the form:

        /music/wav/Artist/Album/02 Song.wav
          -> /music/flac/Artist/Album/02 Song.flac
          ffmpeg exited with status 1

    Records arrive from several worker threads, so writes are serialized
    with a lock. The file is opened lazily on the first failure so that a
    clean run leaves no empty report behind.

    Usage:
        logger.error(
            "Conversion failed",
            extra={
                'failed_source': '/music/wav/Artist/Album/02 Song.wav',
                'failed_target': '/music/flac/Artist/Album/02 Song.flac',
                'failed_reason': 'ffmpeg exited with status 1'
            }
        )
    """

    def __init__(self, report_path: Path) -> None:
        super().__init__(level=logging.ERROR)
        self.report_path = report_path
        self.report_file: TextIO | None = None
        self._write_lock = threading.Lock()

    def emit(self, record: logging.LogRecord) -> None:
        source = getattr(record, "failed_source", None)
        if source is None:
            return

        target = getattr(record, "failed_target", "")
        reason = getattr(record, "failed_reason", record.getMessage())
        try:
            with self._write_lock:
                if self.report_file is None:
                    self.report_path.parent.mkdir(parents=True, exist_ok=True)
                    self.report_file = open(self.report_path, "w", encoding="utf-8")
                self.report_file.write(f"{source}\n  -> {target}\n  {reason}\n\n")
                self.report_file.flush()
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        with self._write_lock:
            if self.report_file is not None:
                self.report_file.close()
                self.report_file = None
        super().close()


def parse_size(size_str: str) -> int:
    """
    Parse a size string to bytes.

    Args:
        size_str: Size string like "10MB", "1GB", "500KB" or "2048B".

    Returns:
        Size in bytes.

    Raises:
        ValueError: If the string is not a number followed by a unit.
    """
    multipliers = {
        "B": 1,
        "KB": 1024,
        "MB": 1024 ** 2,
        "GB": 1024 ** 3,
    }

    match = re.match(r"^(\d+(?:\.\d+)?)\s*([KMG]?B)$", size_str.upper().strip())
    if not match:
        raise ValueError(f"Invalid size format: {size_str}")

    number, unit = match.groups()
    return int(float(number) * multipliers[unit])


def setup_logging(
    level: str = "INFO",
    log_file: Path | None = None,
    colored: bool = True,
    max_size: str = "10MB",
    backup_count: int = 3,
    quiet: bool = False
) -> None:
    """
    Configure the logging system for the application.

    Call once at startup, after the configuration is loaded and before
    any worker thread is started. Calling it again replaces the handlers.

    Args:
        level: Console log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path of a rotating log file capturing everything
                  at DEBUG level. failures.log is written next to it.
        colored: Use colorama colors for console level names.
        max_size: Maximum log file size before rotation, e.g. "10MB".
        backup_count: Number of rotated log files to keep.
        quiet: Disable console output entirely (file logging is unaffected).
    """
    shutdown_logging()

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    if not quiet:
        console_handler = TqdmLoggingHandler()
        console_handler.setLevel(getattr(logging, level.upper(), logging.INFO))
        console_handler.setFormatter(ColoredFormatter(CONSOLE_LOG_FORMAT, use_colors=colored))
        root_logger.addHandler(console_handler)

    if log_file is not None:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=parse_size(max_size),
            backupCount=backup_count,
            encoding="utf-8"
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, datefmt=FILE_DATE_FORMAT))
        root_logger.addHandler(file_handler)

        root_logger.addHandler(FailedConversionHandler(log_path.parent / FAILURES_FILENAME))

    if not root_logger.handlers:
        root_logger.addHandler(logging.NullHandler())

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("lossless_mirror").debug(
        f"Logging initialized - Level: {level}, File: {log_file}, Quiet: {quiet}"
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: The logger name, typically __name__ of the calling module.

    Returns:
        logging.Logger: A logger configured by setup_logging().
    """
    return logging.getLogger(name)


def log_conversion_failure(
    logger: logging.Logger,
    source: Path,
    target: Path,
    reason: str
) -> None:
    """
    Log a failed conversion with the extra fields FailedConversionHandler needs.

    Args:
        logger: The logger to use for the message.
        source: Source audio file.
        target: Destination path that was not produced.
        reason: Why the conversion failed.

    Example:
        log_conversion_failure(
            logger,
            source=Path("/music/wav/Artist/Album/02 Song.wav"),
            target=Path("/music/flac/Artist/Album/02 Song.flac"),
            reason="ffmpeg exited with status 1"
        )
    """
    logger.error(
        f"Failed to convert {source}: {reason}",
        extra={
            "failed_source": str(source),
            "failed_target": str(target),
            "failed_reason": reason,
        }
    )


def shutdown_logging() -> None:
    """
    Flush, close and remove every handler of the root logger.

    Safe to call multiple times; typically called in a finally block.
    """
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        try:
            handler.flush()
            handler.close()
        finally:
            root_logger.removeHandler(handler)
