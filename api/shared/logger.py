"""
Centralized logging for the genviz backend and viewer.

Structured, level-based logging using Python's built-in logging module.

Usage:
    from api.shared.logger import get_logger

    logger = get_logger(__name__)
    logger.info("Server starting on port %d", port)
    logger.warning("Ignoring malformed message from %s", client_id)
"""

import logging
import sys

_configured = False


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging for genviz.

    Call once at startup (main.py or the viewer CLI). Subsequent calls are no-ops.
    """
    global _configured
    if _configured:
        return

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stdout,
        force=True,
    )
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger scoped to the genviz namespace.

    Args:
        name: Module name (typically ``__name__``).
    """
    return logging.getLogger(name)
