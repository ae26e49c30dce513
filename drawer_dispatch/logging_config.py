import logging

LOG_FORMAT = "[%(asctime)s] %(levelname)s [%(name)s]: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_VALID_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


def configure_logging(level: str = "INFO") -> str:
    """Install a single stream handler on the root logger.

    Returns the level actually applied; an unknown ``level`` falls back to INFO.
    """
    requested = (level or "").strip().upper()
    applied = requested if requested in _VALID_LEVELS else "INFO"

    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_drawer_dispatch", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    handler._drawer_dispatch = True
    root.addHandler(handler)
    root.setLevel(applied)

    logger = logging.getLogger(__name__)
    if applied != requested:
        logger.warning("Invalid LOG_LEVEL %r, using %s", level, applied)
    logger.info("Logging initialised at level %s", applied)
    return applied
