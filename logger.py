import logging
import os
from logging.handlers import RotatingFileHandler
import sys


def setup_logger(name='tachi', log_level=None):
    """
    Set up a named logger writing to a rotating file and to stdout

    Args:
        name: Logger name, also used as the log file name
        log_level: Logging level (default: LOG_LEVEL env var, INFO)

    Returns:
        Configured logger instance
    """
    if log_level is None:
        log_level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)

    logger = logging.getLogger(name)
    logger.setLevel(log_level)

    # Modules re-importing the logger must not stack handlers
    if logger.handlers:
        logger.handlers.clear()

    file_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    )
    console_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    # Rotating log files, max 5MB per file, keep 5 backups
    log_dir = os.getenv("LOG_DIR", "logs")
    os.makedirs(log_dir, exist_ok=True)
    file_handler = RotatingFileHandler(
        os.path.join(log_dir, f'{name}.log'),
        maxBytes=5*1024*1024,
        backupCount=5
    )
    file_handler.setLevel(log_level)
    file_handler.setFormatter(file_formatter)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(console_formatter)

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    return logger


def mask_address(address):
    """Shorten an address for logs and display names: 0x1234...abcd"""
    if not address:
        return ""
    if len(address) <= 10:
        return address
    return f"{address[:6]}...{address[-4:]}"
