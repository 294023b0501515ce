import logging

from .config import get_log_level

# Library modules log through children of this logger; only entry points
# attach handlers.
LOGGER_NAME = "diff_bundle"

logger = logging.getLogger(LOGGER_NAME)


def get_logger(name: str) -> logging.Logger:
    """Return a child of the package logger."""
    return logger.getChild(name)


def configure_logging(level=None) -> logging.Logger:
    """Attach a stderr handler to the package logger."""
    logger.handlers.clear()
    logger.propagate = False

    formatter = logging.Formatter("diff-bundle: %(levelname)-8s %(message)s")
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    logger.setLevel(level or get_log_level())
    return logger
