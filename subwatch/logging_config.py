import logging
import sys

def setup_logger(name="subwatch", level=logging.INFO):
    """Set up and return the package logger with a standard configuration"""
    logger = logging.getLogger(name)

    # Avoid duplicate handlers if setup_logger is called multiple times
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%H:%M:%S'
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    # Level can be raised later, e.g. when debug mode is switched on
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.setLevel(level)

    return logger
