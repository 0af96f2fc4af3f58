"""
Logging configuration
"""
import logging
import os
import sys

FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logger(name: str, level: str = None) -> logging.Logger:
    """
    Setup logger with standard format

    Args:
        name: Logger name (usually __name__)
        level: Log level name, defaults to LOG_LEVEL env var or INFO

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    level = level or os.getenv("LOG_LEVEL", "INFO")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Console handler, added once per logger
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        formatter = logging.Formatter(FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger
