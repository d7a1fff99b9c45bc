import logging
import sys
from pathlib import Path
from typing import Optional, TextIO

from config import LoggingConfig

CONSOLE_FORMAT = '%(asctime)s - %(levelname)s - [%(name)s] - %(message)s'
FILE_FORMAT = '%(asctime)s - %(levelname)s - [%(name)s] - %(funcName)s:%(lineno)d - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logging(config: LoggingConfig, debug: bool = False,
                  stream: Optional[TextIO] = None, log_file: Optional[str] = None) -> logging.Logger:
    """
    Setup logging with a console handler and an optional file handler.

    Args:
        config: Logging configuration section
        debug: Force DEBUG level
        stream: Console stream, stdout by default
        log_file: Overrides ``config.log_file``; empty string disables the file handler

    Returns:
        Configured root logger
    """
    level = logging.DEBUG if debug else getattr(logging, config.log_level, logging.INFO)

    logger = logging.getLogger()
    logger.setLevel(level)
    logger.handlers.clear()

    console_handler = logging.StreamHandler(stream or sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(console_handler)

    path = config.log_file if log_file is None else log_file
    if path:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, mode='a', encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(file_handler)

    # gRPC and google-auth chatter is not useful at INFO
    for noisy in ('google', 'grpc', 'urllib3'):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return logger
