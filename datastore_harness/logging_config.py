import logging
import os
import sys
from typing import Optional, TextIO


def setup_logging(
    level: Optional[str] = None,
    format_string: Optional[str] = None,
    stream: Optional[TextIO] = None,
) -> None:
    """
    Configure logging for the harness. Call this once at startup.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
               If None, reads from LOG_LEVEL env var or defaults to INFO
        format_string: Optional custom format string
        stream: Where records go, defaults to stdout
    """
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")

    if format_string is None:
        format_string = (
            "[%(asctime)s] [%(levelname)s] [%(name)s:%(funcName)s] %(message)s"
        )

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=format_string,
        handlers=[logging.StreamHandler(stream or sys.stdout)],
        force=True,
    )

    # Suppress some noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
