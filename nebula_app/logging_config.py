"""
Logging configuration for the nebula package.

Library modules only call logging.getLogger(__name__); the desktop entry point
(or an embedding application) calls setup_logging() once, with the level
picked by resolve_level():

  * --debug on the command line  -> DEBUG
  * NEBULA_LOG_LEVEL=<name>      -> that level (e.g. "warning")
  * otherwise                    -> INFO

VisPy logs every inactive uniform at INFO. The sphere declares two on purpose
(see shader_program), so the 'vispy' logger is held at WARNING unless the app
runs with DEBUG.
"""
import logging
import os
import sys
from typing import Mapping, Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%H:%M:%S'

LEVEL_ENV_VAR = "NEBULA_LOG_LEVEL"

_VISPY_LOGGER = "vispy"


def resolve_level(debug: bool = False, environ: Optional[Mapping[str, str]] = None) -> int:
    """Map the --debug flag and NEBULA_LOG_LEVEL to a logging level."""
    if debug:
        return logging.DEBUG

    env = os.environ if environ is None else environ
    name = (env.get(LEVEL_ENV_VAR) or "").strip().upper()
    if name:
        level = logging.getLevelName(name)
        # Unknown names come back as the string "Level <name>"
        if isinstance(level, int):
            return level
    return logging.INFO


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    """
    Configure the 'nebula_app' logger namespace and return its root logger.

    Args:
        level: Logging level, usually from resolve_level().
        log_file: Optional path to also write logs to (truncated on start).
    """
    logger = logging.getLogger("nebula_app")
    logger.setLevel(level)

    # The window can be re-created in the same process (tests, embedding)
    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode='w', encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logging.getLogger(_VISPY_LOGGER).setLevel(logging.INFO if level <= logging.DEBUG else logging.WARNING)

    logger.info("Logging initialized (%s).", logging.getLevelName(level))
    return logger
