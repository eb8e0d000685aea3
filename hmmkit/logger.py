"""
Logging infrastructure for hmmkit.

Every module logs through a child of the 'hmmkit' logger, which writes to
stderr and, when file logging is enabled (config or CLI --log-file), to a
log file as well.
"""

import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from .config import get_config

ROOT_LOGGER_NAME = 'hmmkit'


class HMMKitLogger:
    """Owns the handlers of the hmmkit root logger."""

    def __init__(self):
        self._loggers = {}
        self._setup_root_logger()

    @property
    def root(self) -> logging.Logger:
        return logging.getLogger(ROOT_LOGGER_NAME)

    def _setup_root_logger(self):
        """Configure root logger with settings from config."""
        level = getattr(logging, (get_config('logging', 'level') or 'INFO').upper())
        formatter = logging.Formatter(get_config('logging', 'format'))

        root_logger = self.root
        root_logger.setLevel(level)
        root_logger.handlers.clear()

        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

        if get_config('logging', 'file_logging'):
            self.enable_file_logging()

        # hmmkit records never reach the application's root logger
        root_logger.propagate = False

    def get_logger(self, name: str) -> logging.Logger:
        """Get or create a logger with the specified name."""
        full_name = name if name.startswith(ROOT_LOGGER_NAME) else f'{ROOT_LOGGER_NAME}.{name}'

        if full_name not in self._loggers:
            self._loggers[full_name] = logging.getLogger(full_name)

        return self._loggers[full_name]

    def set_level(self, level: str):
        """Set logging level of the root logger and all of its handlers."""
        log_level = getattr(logging, level.upper())

        root_logger = self.root
        root_logger.setLevel(log_level)
        for handler in root_logger.handlers:
            handler.setLevel(log_level)

    def file_handlers(self) -> List[logging.FileHandler]:
        return [h for h in self.root.handlers if isinstance(h, logging.FileHandler)]

    def enable_file_logging(self, log_file: Optional[str] = None) -> Path:
        """
        Mirror hmmkit log records into a file.

        Enabling the file already being written is a no-op; any other file
        handler is closed and replaced, so records never go to two files.

        Args:
            log_file: Target path (default: 'log_file' of the logging config)

        Returns:
            Path of the log file
        """
        log_path = Path(log_file or get_config('logging', 'log_file') or 'hmmkit.log')

        if any(h.baseFilename == os.path.abspath(log_path) for h in self.file_handlers()):
            return log_path
        self.disable_file_logging()

        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(self.root.level)
        file_handler.setFormatter(logging.Formatter(get_config('logging', 'format')))
        self.root.addHandler(file_handler)

        return log_path

    def disable_file_logging(self):
        """Remove and close every file handler."""
        for handler in self.file_handlers():
            self.root.removeHandler(handler)
            handler.close()


# Global logger manager instance
_logger_manager = HMMKitLogger()


def get_logger(name: str = 'main') -> logging.Logger:
    """Get a logger instance for the specified module/component."""
    return _logger_manager.get_logger(name)


def set_log_level(level: str):
    """Set global logging level."""
    _logger_manager.set_level(level)


def enable_file_logging(log_file: Optional[str] = None) -> Path:
    """Enable file logging globally."""
    return _logger_manager.enable_file_logging(log_file)


def disable_file_logging():
    """Disable file logging globally."""
    _logger_manager.disable_file_logging()
