"""
Central logging configuration. Modules log through logging.getLogger(__name__);
configure_logging() is called once when the application starts.
"""
import logging

from app.config import settings


def configure_logging(level: str = None) -> logging.Logger:
    """Attach a stream handler to the ``app`` logger and set its level."""
    logger = logging.getLogger("app")
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(settings.LOG_FORMAT))
        logger.addHandler(handler)
    logger.setLevel(getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO))
    return logger
