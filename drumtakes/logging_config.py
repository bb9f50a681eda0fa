"""
Logging configuration for drumtakes.
"""
import logging
import sys
from pathlib import Path
from typing import Any, Optional


class ColoredFormatter(logging.Formatter):
    """Colored log formatter for terminal output."""

    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
        'RESET': '\033[0m'        # Reset
    }

    def format(self, record):
        color = self.COLORS.get(record.levelname, '')
        reset = self.COLORS['RESET']
        # Copy so file handlers sharing the record see the plain level name
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"{color}{record.levelname}{reset}"
        return super().format(record)


def setup_logging(level: str = "WARNING", log_file: Optional[Path] = None) -> None:
    """Setup logging configuration for drumtakes.

    Console records go to stderr so they never land inside the
    playback status region drawn on stdout.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path
    """
    logger = logging.getLogger('drumtakes')
    logger.setLevel(logging.DEBUG if log_file else getattr(logging, level.upper()))

    # Clear existing handlers
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(getattr(logging, level.upper()))
    console_formatter = ColoredFormatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )
    console_handler.setFormatter(console_formatter)
    logger.addHandler(console_handler)

    # File handler (optional)
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
        )
        file_handler.setFormatter(file_formatter)
        logger.addHandler(file_handler)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a specific module.

    Args:
        name: Module name

    Returns:
        Logger instance
    """
    return logging.getLogger(f'drumtakes.{name}')


def trim_for_log(value: Any, max_length: int = 600) -> str:
    """Shorten a payload for a log line."""
    if value is None:
        return "<empty>"
    text = value if isinstance(value, str) else str(value)
    if len(text) <= max_length:
        return text
    return f"{text[:max_length]}... (truncated, total {len(text)} chars)"


def log_stage(logger: logging.Logger, label: str, message: str, payload: Any = None) -> None:
    """Emit a debug record tagged with a pipeline stage label."""
    if payload is None:
        logger.debug(f"[{label}] {message}")
    else:
        logger.debug(f"[{label}] {message} {trim_for_log(payload)}")


# Custom exceptions for better error handling
class DrumTakesError(Exception):
    """Base exception for drumtakes."""
    pass


class AudioPlayerError(DrumTakesError):
    """Audio playback related errors.

    ``detail`` holds the raw diagnostic text, shown only in debug mode.
    """

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(message)
        self.detail = detail


class PlaybackStartError(AudioPlayerError):
    """A player binary could not be launched."""
    pass


class ConfigurationError(DrumTakesError):
    """Configuration related errors."""
    pass


class CatalogError(DrumTakesError):
    """Take catalog errors."""
    pass
