"""
Logging configuration for FreshBite.

One package logger ("freshbite") writing to stdout; modules ask for a child
logger through get_logger().
"""
import logging
import os
import sys

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logger = logging.getLogger("freshbite")
logger.setLevel(LOG_LEVEL)

if not logger.handlers:
    console_handler = logging.StreamHandler(sys.stdout)

    formatter = logging.Formatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    console_handler.setFormatter(formatter)

    logger.addHandler(console_handler)

# avoid duplicate lines through the root logger
logger.propagate = False


def set_level(level: str) -> None:
    """Re-apply the level once the app config is known."""
    logger.setLevel((level or "INFO").upper())


def get_logger(name: str = None) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Optional suffix, e.g. "orders" -> "freshbite.orders"

    Returns:
        Logger instance
    """
    if name:
        return logging.getLogger(f"freshbite.{name}")
    return logger
