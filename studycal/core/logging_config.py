"""
Central logging configuration for studycal.

The engine modules only create module loggers; hosts (the CLI, or an embedding
application) call ``configure_logging`` once to decide levels and formatting.
"""

import logging
import os
import sys
from typing import Optional

from colorlog import ColoredFormatter

PACKAGE_LOGGER = "studycal"

# Readable colorized format: HH:MM:SS  LEVEL   logger.name: message
_LOG_FORMAT = "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s %(name)s: %(message)s"
_LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "bold_red",
}

# Third-party loggers that are chatty at DEBUG
_NOISY_LOGGERS: dict[str, int] = {
    "icalendar": logging.INFO,
    "dateutil": logging.WARNING,
    "pydantic": logging.WARNING,
}

_ENGINE_MODULES = [
    PACKAGE_LOGGER,
    "studycal.recurrence.rrule_codec",
    "studycal.recurrence.rrule_expander",
    "studycal.calendar.ics_parser",
    "studycal.calendar.ics_encoder",
    "studycal.calendar.ics_validator",
    "studycal.calendar.import_mapper",
]


def _env_debug_enabled() -> bool:
    return os.getenv("STUDYCAL_DEBUG", "").strip().lower() in ("1", "true", "yes", "on")


def configure_logging(debug_mode: bool = False, force_debug: Optional[bool] = None) -> None:
    """
    Configure logging levels and console output for studycal.

    Args:
        debug_mode: Whether to enable debug logging for studycal modules
        force_debug: Override debug mode setting (None to use env var detection)

    Environment Variables:
        STUDYCAL_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        STUDYCAL_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_log_level = os.getenv("STUDYCAL_LOG_LEVEL", "").upper()

    if force_debug is not None:
        final_debug = force_debug
    elif _env_debug_enabled():
        final_debug = True
    else:
        final_debug = debug_mode

    root_level = logging.DEBUG if final_debug else logging.INFO
    if env_log_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
        root_level = getattr(logging, env_log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    # Only install a handler if the host has not configured one already
    if not root_logger.handlers:
        handler = logging.StreamHandler(stream=sys.stderr)
        handler.setFormatter(ColoredFormatter(_LOG_FORMAT, datefmt="%H:%M:%S", log_colors=_LOG_COLORS))
        root_logger.addHandler(handler)

    logger_config = dict(_NOISY_LOGGERS)
    engine_level = logging.DEBUG if final_debug else logging.INFO
    for module in _ENGINE_MODULES:
        logger_config[module] = engine_level

    for logger_name, level in logger_config.items():
        logging.getLogger(logger_name).setLevel(level)

    logging.getLogger(PACKAGE_LOGGER).debug(
        "Logging initialized at level %s", logging.getLevelName(root_level)
    )


def get_logging_status() -> dict[str, str]:
    """
    Get current logging configuration status.

    Returns:
        Dictionary mapping logger names to their current levels
    """
    status = {"root": logging.getLevelName(logging.getLogger().level)}

    for logger_name in [PACKAGE_LOGGER, *_NOISY_LOGGERS]:
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)

    return status
