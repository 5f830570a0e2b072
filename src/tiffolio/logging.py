import logging
import os
from typing import Optional

PACKAGE = "tiffolio"
LEVEL_ENV_VAR = "TIFFOLIO_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Set by set_level(); wins over the environment for loggers created later
_level_override: Optional[int] = None


def parse_level(level_name: str) -> int:
    """Map a level name such as ``"debug"`` to its ``logging`` constant."""
    level = logging.getLevelName(level_name.strip().upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {level_name}")
    return level


def _default_level(name: str) -> int:
    if _level_override is not None:
        return _level_override

    # WARNING for library modules, INFO for the CLI
    fallback = logging.INFO if name.endswith(".cli") else logging.WARNING
    env_value = os.getenv(LEVEL_ENV_VAR)
    if not env_value:
        return fallback
    try:
        return parse_level(env_value)
    except ValueError:
        return fallback


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(_default_level(name))
    return logger


def set_level(level_name: str) -> int:
    """
    Set the level of every tiffolio logger, existing and future.

    Module loggers are created at import time, before the CLI has parsed its
    options, so they are updated in place.

    Raises:
        ValueError: If ``level_name`` is not a logging level
    """
    global _level_override
    level = parse_level(level_name)
    _level_override = level

    for name, logger in logging.root.manager.loggerDict.items():
        if isinstance(logger, logging.Logger) and (name == PACKAGE or name.startswith(PACKAGE + ".")):
            logger.setLevel(level)
    return level


def reset_level() -> None:
    """Drop a level set by :func:`set_level`; later loggers follow the environment again."""
    global _level_override
    _level_override = None
