"""
Logging utilities for TractExemplar

Provides package-wide logging with console and optional file output.
"""

import logging
import sys
from pathlib import Path
from datetime import datetime
from typing import Optional


ROOT_LOGGER_NAME = "tractexemplar"


class TractExemplarLogger:
    """Centralized logger configuration for TractExemplar operations"""

    def __init__(
        self,
        name: str = ROOT_LOGGER_NAME,
        log_dir: Optional[str] = None,
        level: int = logging.INFO,
        console: bool = True
    ):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)
        self.logger.handlers = []  # Clear existing handlers
        self.log_file: Optional[Path] = None

        # Create formatters
        detailed_formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        simple_formatter = logging.Formatter(
            '%(levelname)s: %(message)s'
        )

        # Console handler
        if console:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(level)
            console_handler.setFormatter(simple_formatter)
            self.logger.addHandler(console_handler)

        # File handler
        if log_dir is not None:
            log_path = Path(log_dir)
            log_path.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
            self.log_file = log_path / f"tractexemplar_{timestamp}.log"

            file_handler = logging.FileHandler(self.log_file)
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(detailed_formatter)
            self.logger.addHandler(file_handler)

            self.logger.info(f"Logging to: {self.log_file}")

    def get_logger(self) -> logging.Logger:
        """Get the configured logger instance"""
        return self.logger


# Global logger instance
_global_logger: Optional[TractExemplarLogger] = None


def configure_logging(
    level: int = logging.INFO,
    log_dir: Optional[str] = None,
    console: bool = True
) -> logging.Logger:
    """
    (Re)configure the package root logger

    Args:
        level: Logging level for the console handler
        log_dir: Directory for a timestamped log file (None = no file)
        console: Attach a stdout handler

    Returns:
        Package root logger
    """
    global _global_logger
    _global_logger = TractExemplarLogger(
        ROOT_LOGGER_NAME, log_dir=log_dir, level=level, console=console
    )
    return _global_logger.get_logger()


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """
    Get a logger within the package hierarchy

    The package root logger is configured on first use; module loggers
    propagate to it.
    """
    global _global_logger
    if _global_logger is None:
        _global_logger = TractExemplarLogger(ROOT_LOGGER_NAME)
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
