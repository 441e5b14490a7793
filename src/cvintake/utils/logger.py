"""
Logging setup for the intake application.
"""
import logging
import os

from cvintake.config import get_settings

_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logger(name: str = "cvintake") -> logging.Logger:
    """
    Configure the package logger with a file and a console handler.

    Module loggers created with ``logging.getLogger(__name__)`` propagate
    here, so calling this once at startup is enough.

    Args:
        name: Logger name

    Returns:
        Configured logger instance
    """
    settings = get_settings()

    log_dir = os.path.dirname(settings.log_file)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)

    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, settings.log_level.upper()))

    # Repeated calls (scripts, tests) must not stack handlers
    if logger.handlers:
        return logger

    formatter = logging.Formatter(_FORMAT)

    file_handler = logging.FileHandler(settings.log_file)
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    return logger
