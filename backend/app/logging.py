"""
Logging configuration for the Inkwell API.
"""

import logging
import sys


def setup_logging(debug: bool = False) -> logging.Logger:
    """
    Configure application logging.

    :param debug: Lower the threshold to DEBUG when True
    :type debug: bool
    :return: Root logger for the notes application
    :rtype: logging.Logger
    """
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )
    # httpx logs every request URL at INFO.
    for noisy in ('httpx', 'httpcore', 'aiosqlite', 'engineio', 'socketio'):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return logging.getLogger('inkwell')


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a specific module.

    :param name: The module name for the logger
    :type name: str
    :return: Logger instance for the specified module
    :rtype: logging.Logger
    """
    return logging.getLogger(f'inkwell.{name}')
