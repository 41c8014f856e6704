"""
Logging for MedicFácil.

Every module logs through a child of the "medicfacil" logger:

    from .logger import get_logger
    logger = get_logger(__name__)

Nothing is written anywhere until setup_logger() attaches a file handler
(the CLI does this on startup), so importing the package in tests or from
another program stays silent.
"""

import logging
from pathlib import Path

from . import config


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

ROOT_LOGGER_NAME = 'medicfacil'


def setup_logger(name: str = ROOT_LOGGER_NAME, log_file: str = None,
                 level: int = logging.INFO) -> logging.Logger:
    """
    Configure a logger that writes to a file.

    Args:
        name: Logger name (defaults to the package logger)
        log_file: Path of the log file (defaults to <data>/logs/medicfacil.log)
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        The configured logger
    """
    if log_file is None:
        log_file = str(config.LOGS_DIR / 'medicfacil.log')

    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Running setup twice must not duplicate every line
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    file_handler = logging.FileHandler(log_file, encoding='utf-8')
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    logger.addHandler(file_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the package logger (e.g. 'medicfacil.ledger')."""
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + '.'):
        return logging.getLogger(name)
    return logging.getLogger(f'{ROOT_LOGGER_NAME}.{name}')


def get_log_tail(lines: int = 50, log_file: str = None) -> str:
    """
    Read the last lines of the log file.

    Returns:
        The log content, or a message if the file does not exist yet
    """
    if log_file is None:
        log_file = str(config.LOGS_DIR / 'medicfacil.log')

    path = Path(log_file)
    if not path.exists():
        return f"No log file at {path}"

    with open(path, 'r', encoding='utf-8') as f:
        all_lines = f.readlines()
    return ''.join(all_lines[-lines:])


logging.getLogger(ROOT_LOGGER_NAME).addHandler(logging.NullHandler())
