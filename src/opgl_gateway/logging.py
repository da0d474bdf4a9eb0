import logging
from pythonjsonlogger import jsonlogger

LOGGER_NAME = "opgl_gateway"


def setup_logging(level: str, name: str = LOGGER_NAME) -> logging.Logger:
    """
    Build the service logger and return it.

    Components receive this logger (or a child of it) explicitly instead of
    reaching for a module-level one, so several apps can live in one process
    with their own handlers (tests do this).
    """
    logger = logging.getLogger(name)
    logger.setLevel(level.upper())
    logger.propagate = False

    # Remove previous handlers to avoid duplicate logs on re-creation
    while logger.handlers:
        logger.handlers.pop()

    handler = logging.StreamHandler()
    formatter = jsonlogger.JsonFormatter(
        "%(asctime)s %(levelname)s %(name)s %(message)s %(request_id)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    return logger
