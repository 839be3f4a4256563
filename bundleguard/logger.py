"""
BundleGuard Logging Module

This module provides the centralized logging setup for BundleGuard. Every
module logs through a standard `logging.getLogger(__name__)` logger under the
"bundleguard" namespace; the singleton configured here owns the handlers for
that namespace.

Key Features:
- Singleton pattern for consistent logging across the application
- Console handler for errors, always active
- Optional timestamped log file per protection run
- Redaction of credentials and license tokens before records are written

Usage:
    from bundleguard.logger import logger

    logger.set_log_file("build", "/path/to/logs", "DEBUG")
    logger.info("Protection started")
"""

import copy
import logging
import re
import sys
from datetime import datetime
from pathlib import Path
from typing import ClassVar

from bundleguard.constants import BUNDLEGUARD_DEFAULT_LOGGER, PROTECTED_KEYWORDS

REDACTED = "***REDACTED***"


def _get_sanitize_pattern() -> re.Pattern:
    """Get or build the compiled regex pattern for sensitive data detection."""
    if not hasattr(_get_sanitize_pattern, "_pattern"):
        keywords = "|".join(re.escape(kw) for kw in PROTECTED_KEYWORDS)
        _get_sanitize_pattern._pattern = re.compile(  # noqa: SLF001
            rf"({keywords})(['\"]?\s*[:=]\s*)(['\"]?)(\S+?)(\3)(?=\s|,|}}|\]|$)", re.IGNORECASE
        )
    return _get_sanitize_pattern._pattern  # noqa: SLF001


def sanitize_log_message(message: str) -> str:
    """Sanitize sensitive data from a log message.

    Args:
        message: The log message to sanitize.

    Returns:
        Message with sensitive values replaced by REDACTED.
    """
    if not isinstance(message, str):
        return message
    return _get_sanitize_pattern().sub(rf"\1\2\3{REDACTED}\5", message)


class SanitizingFormatter(logging.Formatter):
    """Formatter that redacts sensitive values from the message and its args."""

    DEFAULT_FORMAT: ClassVar[str] = "%(asctime)s [%(levelname)s] [%(name)s] - %(message)s"

    def __init__(self, fmt: str | None = None, datefmt: str | None = "%Y-%m-%d %H:%M:%S"):
        super().__init__(fmt or self.DEFAULT_FORMAT, datefmt=datefmt)

    def format(self, record) -> str:
        # Work on a copy so other handlers still see the original record.
        record_copy = copy.copy(record)
        record_copy.msg = sanitize_log_message(str(record_copy.msg))
        if record_copy.args:
            record_copy.args = tuple(
                sanitize_log_message(arg) if isinstance(arg, str) else arg for arg in record_copy.args
            )
        return super().format(record_copy)


class BundleGuardLogger:
    """
    Singleton logger class for BundleGuard.

    This class manages the handlers of the "bundleguard" logger namespace and
    can additionally route records to a per-run log file.
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if hasattr(self, "_initialized"):
            return
        self._initialized = True

        self._logger = logging.getLogger("bundleguard")
        self._logger.setLevel(logging.INFO)

        # Errors always reach the console
        self._console_handler = logging.StreamHandler(sys.stderr)
        self._console_handler.setLevel(logging.ERROR)
        self._console_handler.setFormatter(SanitizingFormatter())
        self._logger.addHandler(self._console_handler)

        self._file_handler: logging.FileHandler | None = None

    @property
    def log_file(self) -> str | None:
        """Path of the active log file, if any."""
        return self._file_handler.baseFilename if self._file_handler else None

    def set_level(self, log_level: str) -> None:
        """Set the level of the namespace logger (e.g. "DEBUG", "INFO")."""
        self._logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    def set_console_level(self, log_level: str) -> None:
        """Lower or raise the threshold of the console handler."""
        self._console_handler.setLevel(getattr(logging, log_level.upper(), logging.ERROR))

    def set_log_file(
        self,
        run_name: str,
        log_dir: str | Path | None = None,
        log_level: str = BUNDLEGUARD_DEFAULT_LOGGER["level"],
    ) -> Path:
        """
        Start writing records to a timestamped log file.

        Args:
            run_name: Used as the file name prefix.
            log_dir: Directory to store log files. If None, uses default.
            log_level: Logging level for the file handler.

        Returns:
            Path of the created log file.
        """
        self.clear_log_file()

        log_path = Path(log_dir or BUNDLEGUARD_DEFAULT_LOGGER["directory"])
        log_path.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        filepath = log_path / f"{run_name}_{timestamp}.log"

        level = getattr(logging, log_level.upper(), logging.INFO)
        self._logger.setLevel(min(level, self._logger.level))
        self._file_handler = logging.FileHandler(filepath, encoding="utf-8")
        self._file_handler.setLevel(level)
        self._file_handler.setFormatter(
            SanitizingFormatter("%(asctime)s [%(levelname)s] [%(name)s] [%(funcName)s] - %(message)s")
        )
        self._logger.addHandler(self._file_handler)

        self.info(f"Logging run '{run_name}' to {filepath}")
        return filepath

    def clear_log_file(self) -> None:
        """Stop file logging, if active."""
        if self._file_handler:
            self._logger.removeHandler(self._file_handler)
            self._file_handler.close()
            self._file_handler = None

    def debug(self, message: str, *args: object, **kwargs) -> None:
        """Log a debug message."""
        self._logger.debug(message, *args, **kwargs)

    def info(self, message: str, *args: object, **kwargs) -> None:
        """Log an info message."""
        self._logger.info(message, *args, **kwargs)

    def warning(self, message: str, *args: object, **kwargs) -> None:
        """Log a warning message."""
        self._logger.warning(message, *args, **kwargs)

    def error(self, message: str, *args: object, **kwargs) -> None:
        """Log an error message."""
        self._logger.error(message, *args, **kwargs)

    def exception(self, message: str, *args: object, **kwargs) -> None:
        """Log an exception with traceback."""
        self._logger.exception(message, *args, **kwargs)


# Create the singleton instance
logger = BundleGuardLogger()
