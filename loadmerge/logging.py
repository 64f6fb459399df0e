"""Package-wide logging setup for loadmerge.

All modules obtain loggers through :func:`get_logger` so that they hang off
the single ``loadmerge`` root logger. Worker processes started by the merge
coordinator pick up the parent's level from ``LOADMERGE_LOG_LEVEL``.
"""

import logging
import os
import sys
from typing import Optional

ROOT_LOGGER_NAME = "loadmerge"
LOG_LEVEL_ENV = "LOADMERGE_LOG_LEVEL"
DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_configured = False


def setup_root_logger(
    level: int = logging.INFO,
    format_string: Optional[str] = None,
    handler: Optional[logging.Handler] = None,
) -> None:
    """Attach one handler to the ``loadmerge`` logger.

    Repeated calls are no-ops until :func:`reset_logging` is called.

    Args:
        level: Logging level (default: INFO).
        format_string: Custom format string (optional).
        handler: Custom handler (optional, defaults to a stdout StreamHandler).
    """
    global _configured

    if _configured:
        return

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    if handler is None:
        handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(format_string or DEFAULT_FORMAT))
    root_logger.addHandler(handler)

    # Propagate so pytest's caplog sees records
    root_logger.propagate = True

    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger that inherits the ``loadmerge`` configuration.

    Args:
        name: Logger name, normally ``__name__`` of the calling module.

    Returns:
        Logger instance with level NOTSET so the root level applies.
    """
    setup_root_logger()
    logger = logging.getLogger(name)
    logger.setLevel(logging.NOTSET)
    return logger


def set_global_log_level(level: int) -> None:
    """Set the level of the ``loadmerge`` logger and its handlers."""
    setup_root_logger()
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(level)
    for handler in root_logger.handlers:
        handler.setLevel(level)


def current_level_name() -> str:
    """Return the effective level name of the ``loadmerge`` logger."""
    level = logging.getLogger(ROOT_LOGGER_NAME).getEffectiveLevel()
    return logging.getLevelName(level)


def apply_env_log_level() -> None:
    """Apply the level named in ``LOADMERGE_LOG_LEVEL``, if any.

    Called from worker process initializers. Unknown names fall back to INFO.
    """
    env_level = os.getenv(LOG_LEVEL_ENV)
    if env_level:
        set_global_log_level(getattr(logging, env_level.upper(), logging.INFO))


def enable_debug_logging() -> None:
    """Enable debug logging for the entire package."""
    set_global_log_level(logging.DEBUG)


def disable_debug_logging() -> None:
    """Return to INFO level."""
    set_global_log_level(logging.INFO)


def reset_logging() -> None:
    """Drop handlers and configuration (mainly for tests)."""
    global _configured
    _configured = False

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.handlers.clear()
    root_logger.setLevel(logging.NOTSET)


setup_root_logger()
