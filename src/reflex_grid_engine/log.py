"""Logging helpers for reflex-grid-engine.

The engine never raises for the silent no-op cases (missing rows,
undeclared columns, malformed push events); it reports them here
at DEBUG level instead.
"""

import logging
import sys


class _LoggerHolder:
    """Holder for the package logger instance."""

    instance: logging.Logger | None = None


def get_logger() -> logging.Logger:
    """Return the ``reflex_grid_engine`` logger, configuring it on first use."""
    if _LoggerHolder.instance is None:
        logger = logging.getLogger("reflex_grid_engine")
        logger.setLevel(logging.WARNING)

        if not logger.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setLevel(logging.DEBUG)
            handler.setFormatter(logging.Formatter("%(name)s - %(levelname)s - %(message)s"))
            logger.addHandler(handler)

        _LoggerHolder.instance = logger

    return _LoggerHolder.instance


def debug(msg: str) -> None:
    """Log a debug message."""
    get_logger().debug(msg)


def info(msg: str) -> None:
    """Log an info message."""
    get_logger().info(msg)


def warn(msg: str) -> None:
    """Log a warning message. Never raises."""
    get_logger().warning(msg)


def error(msg: str) -> None:
    """Log an error message. Never raises."""
    get_logger().error(msg)


def exception(msg: str) -> None:
    """Log *msg* together with the active exception's traceback.

    Call this from within an ``except`` block.
    """
    get_logger().exception(msg)


def set_level(level: int | str) -> None:
    """Set the package log level.

    Args:
        level: A ``logging`` level constant or its name (``"DEBUG"``).
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper())
    get_logger().setLevel(level)


def enable_debug() -> None:
    """Show the engine's DEBUG output (no-ops, recompute timings, events)."""
    set_level(logging.DEBUG)
