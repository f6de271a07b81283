"""Logging setup for the image scanner."""

import logging
import sys
from enum import Enum
from typing import Optional


ROOT_LOGGER = "image_scanner"


class LogLevel(Enum):
    """Log level enumeration."""
    QUIET = "quiet"
    INFO = "info"
    VERBOSE = "verbose"


# Custom log levels, between INFO and WARNING
STEP = 25
RESULT = 24

_verbose_mode = False


def is_verbose() -> bool:
    """Check if verbose mode is enabled."""
    return _verbose_mode


class ColoredFormatter(logging.Formatter):
    """Formatter with ANSI colors and a glyph per level."""

    COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[0m",
        STEP: "\033[34m",
        RESULT: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    GLYPHS = {
        logging.DEBUG: "🔍",
        logging.INFO: "ℹ️ ",
        STEP: "📋",
        RESULT: "  ",
        logging.WARNING: "⚠️ ",
        logging.ERROR: "❌",
        logging.CRITICAL: "💥",
    }

    def format(self, record: logging.LogRecord) -> str:
        glyph = self.GLYPHS.get(record.levelno, "")
        color = self.COLORS.get(record.levelno, self.RESET)
        return f"{color}{glyph} {record.getMessage()}{self.RESET}"


class PlainFormatter(logging.Formatter):
    """Plain formatter for non-terminal output (CI logs, redirected stderr)."""

    PREFIXES = {
        logging.DEBUG: "[DEBUG]",
        logging.INFO: "[INFO]",
        STEP: "[STEP]",
        RESULT: "  ",
        logging.WARNING: "[WARN]",
        logging.ERROR: "[ERROR]",
        logging.CRITICAL: "[CRITICAL]",
    }

    def format(self, record: logging.LogRecord) -> str:
        prefix = self.PREFIXES.get(record.levelno, "[LOG]")
        return f"{prefix} {record.getMessage()}"


def setup_logging(
    level: LogLevel = LogLevel.INFO,
    use_colors: Optional[bool] = None,
) -> None:
    """
    Configure the package logger.

    Args:
        level: Desired log level
        use_colors: Whether to use colored output (auto-detect if None)
    """
    global _verbose_mode

    logging.addLevelName(STEP, "STEP")
    logging.addLevelName(RESULT, "RESULT")

    if level == LogLevel.QUIET:
        log_level = logging.WARNING
        _verbose_mode = False
    elif level == LogLevel.VERBOSE:
        log_level = logging.DEBUG
        _verbose_mode = True
    else:
        log_level = logging.INFO
        _verbose_mode = False

    if use_colors is None:
        use_colors = sys.stderr.isatty()

    root_logger = logging.getLogger(ROOT_LOGGER)
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(log_level)
    handler.setFormatter(ColoredFormatter() if use_colors else PlainFormatter())

    root_logger.addHandler(handler)


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Logger name, normally the calling module's ``__name__``

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def log_step(self: logging.Logger, message: str, *args, **kwargs) -> None:
    """Log a step message."""
    if self.isEnabledFor(STEP):
        self._log(STEP, message, args, **kwargs)


def log_result(self: logging.Logger, message: str, *args, **kwargs) -> None:
    """Log a result message."""
    if self.isEnabledFor(RESULT):
        self._log(RESULT, message, args, **kwargs)


def log_success(self: logging.Logger, message: str, *args, **kwargs) -> None:
    """Log a success message."""
    self.info(f"✅ {message}", *args, **kwargs)


def log_verbose(self: logging.Logger, message: str, *args, **kwargs) -> None:
    """Log a verbose message."""
    self.debug(message, *args, **kwargs)


logging.Logger.step = log_step
logging.Logger.result = log_result
logging.Logger.success = log_success
logging.Logger.verbose = log_verbose
