"""
logging_config.py — Centralized Logging Configuration for the Store Credit Service

This module configures unified logging behavior for the entire application.
It ensures that all modules log messages consistently to both console and file.

Features:
    • Combined console and file logging output
    • Process ID tagging for multi-process visibility
    • Standardized log format for all modules
    • Reduced verbosity for external dependencies (e.g., httpx)
"""

import logging
import sys

from . import config


def setup_logging(log_file: str = None, level: str = None):
    """
    Configures the global logging system for the application.

    The configuration includes:
        - Log level: taken from `LOG_LEVEL` (default INFO)
        - Log format: timestamp, log level, process ID, logger name and message
        - Output destinations:
            1. File: `LOG_FILE` (persistent log of allocation decisions)
            2. Console (stdout): real-time logs, Docker/Kubernetes compatible
        - Reduced verbosity for third-party HTTP libraries

    Args:
        log_file (str, optional): Overrides the configured log file path.
        level (str, optional): Overrides the configured log level name.
    """
    log_format = '%(asctime)s - %(levelname)s - [PID:%(process)d] - %(name)s - %(message)s'

    logging.basicConfig(
        level=getattr(logging, (level or config.LOG_LEVEL).upper(), logging.INFO),
        format=log_format,
        handlers=[
            # File output
            logging.FileHandler(log_file or config.LOG_FILE),
            # Console output (stdout, Docker-compatible)
            logging.StreamHandler(sys.stdout)
        ]
    )

    # Reduce verbosity from external libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_logger(name):
    """
    Returns a configured logger instance for a given module or component name.

    Args:
        name (str): The logger name, typically the module’s __name__.

    Returns:
        logging.Logger: A preconfigured logger that follows the global format and handlers.
    """
    return logging.getLogger(name)
