import logging
import os

LOG_FORMAT = "%(asctime)s | %(filename)s:%(lineno)d  | %(levelname)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Overrides the level passed by each module, e.g. AUDIOMATCH_LOG_LEVEL=DEBUG
LOG_LEVEL_ENV = "AUDIOMATCH_LOG_LEVEL"


def _env_level(default):
    """Level named by AUDIOMATCH_LOG_LEVEL, or default when unset or unknown."""
    name = os.environ.get(LOG_LEVEL_ENV, "").strip().upper()
    # getLevelName maps known names to their number and anything else to a string
    level = logging.getLevelName(name) if name else None
    return level if isinstance(level, int) else default


def setup_logger(name=None, level=logging.INFO):
    """
    Set up logger with file and line number information.

    Args:
        name: Logger name (use __name__ to get module name)
        level: Logging level (DEBUG, INFO, WARNING, ERROR)

    Returns:
        logger: Configured logger instance
    """
    level = _env_level(level)

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Prevent duplicate handlers
    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(console_handler)

    return logger


def set_level(level, prefix="audiomatch"):
    """Change the level of every logger (and its handlers) already set up under prefix."""
    changed = []
    for name, logger in list(logging.root.manager.loggerDict.items()):
        if not isinstance(logger, logging.Logger):
            continue
        if name != prefix and not name.startswith(prefix + "."):
            continue
        logger.setLevel(level)
        for handler in logger.handlers:
            handler.setLevel(level)
        changed.append(name)
    return changed
