"""Structured logging setup for stackapply."""

import logging
import os
import sys
from typing import Optional


def setup_logging(level: Optional[int] = None, format_string: Optional[str] = None) -> logging.Logger:
    """
    Set up structured logging for stackapply.
    
    Args:
        level: Logging level (default: STACKAPPLY_LOG_LEVEL or INFO)
        format_string: Custom format string (optional)
    
    Returns:
        Configured logger instance
    """
    if level is None:
        level_name = os.getenv("STACKAPPLY_LOG_LEVEL", "INFO").upper()
        level = getattr(logging, level_name, logging.INFO)
    
    if format_string is None:
        format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    
    logging.basicConfig(
        level=level,
        format=format_string,
        stream=sys.stderr,
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    
    logger = logging.getLogger("stackapply")
    logger.setLevel(level)
    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a specific module."""
    return logging.getLogger(f"stackapply.{name}")
