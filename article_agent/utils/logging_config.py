"""
Console and plain-text file logging for the article_agent package logger.

The structured JSONL audit trail lives in structured_log; this module only
configures human-readable output.
"""

import logging
import sys
from enum import Enum
from pathlib import Path
from typing import Optional

import colorama
from colorama import Fore, Style

colorama.init(autoreset=True)

ROOT_LOGGER_NAME = "article_agent"
DEFAULT_LOG_FILE = "logs/article_agent.log"

_SHORT_FORMAT = "%(levelname)-8s | %(message)s"
_LONG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(funcName)s:%(lineno)d | %(message)s"


class LogLevel(str, Enum):
    """Verbosity presets accepted in settings.yaml (logging.level)."""

    MINIMAL = "minimal"  # warnings and errors
    NORMAL = "normal"  # progress messages
    DETAILED = "detailed"  # debug output
    FULL = "full"  # debug output with logger names and timestamps


_PRESET_LEVELS = {
    LogLevel.MINIMAL: logging.WARNING,
    LogLevel.NORMAL: logging.INFO,
    LogLevel.DETAILED: logging.DEBUG,
    LogLevel.FULL: logging.DEBUG,
}


class ColoredFormatter(logging.Formatter):
    """Prefixes the level name with a colorama color."""

    LEVEL_COLORS = {
        "DEBUG": Fore.CYAN,
        "INFO": Fore.GREEN,
        "WARNING": Fore.YELLOW,
        "ERROR": Fore.RED,
        "CRITICAL": Fore.RED + Style.BRIGHT,
    }

    def format(self, record):
        plain = record.levelname
        record.levelname = f"{self.LEVEL_COLORS.get(plain, '')}{plain}{Style.RESET_ALL}"
        try:
            return super().format(record)
        finally:
            record.levelname = plain


def _file_handler(path: str) -> logging.Handler:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(target, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def setup_logging(
    level: LogLevel = LogLevel.NORMAL,
    log_to_file: bool = False,
    log_file: Optional[str] = None,
    verbose: bool = False,
    debug: bool = False,
) -> logging.Logger:
    """
    Configure the package logger. Calling it again replaces earlier handlers.

    Args:
        level: Verbosity preset
        log_to_file: Also write every record (DEBUG and up) to a text file
        log_file: Text log path, DEFAULT_LOG_FILE when omitted
        verbose: CLI --verbose, forces debug output
        debug: CLI --debug, forces debug output

    Returns:
        The package logger
    """
    preset = LogLevel(level)
    detailed = verbose or debug or preset == LogLevel.FULL
    effective = logging.DEBUG if verbose or debug else _PRESET_LEVELS[preset]

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(effective)
    logger.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(effective)
    if detailed:
        console.setFormatter(ColoredFormatter(_LONG_FORMAT, datefmt="%H:%M:%S"))
    else:
        console.setFormatter(ColoredFormatter(_SHORT_FORMAT))
    logger.addHandler(console)

    if log_to_file:
        logger.addHandler(_file_handler(log_file or DEFAULT_LOG_FILE))

    return logger
