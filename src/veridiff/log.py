"""Initialisation du logging avec préfixes de niveau (INFO, WARN, ERROR, DEBUG)."""

from __future__ import annotations

import logging
import sys

__all__ = ["setup_logging", "get_logger", "reset_logging"]

LOGGER_NAME = "veridiff"

_logger: logging.Logger | None = None


class LabeledFormatter(logging.Formatter):
    """Formate ``LABEL message`` ; WARNING devient WARN."""

    LEVEL_LABELS = {
        logging.DEBUG: "DEBUG",
        logging.INFO: "INFO",
        logging.WARNING: "WARN",
        logging.ERROR: "ERROR",
        logging.CRITICAL: "CRITICAL",
    }

    def format(self, record: logging.LogRecord) -> str:
        label = self.LEVEL_LABELS.get(record.levelno, record.levelname)
        message = f"{label} {record.getMessage()}"
        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)
        return message


def setup_logging(verbose: bool = False) -> logging.Logger:
    """
    Configure le logger ``veridiff`` (idempotent).

    Args:
        verbose: DEBUG si True, sinon INFO.

    Returns:
        Le logger configuré.
    """
    global _logger

    level = logging.DEBUG if verbose else logging.INFO
    if _logger is not None:
        _logger.setLevel(level)
        for handler in _logger.handlers:
            handler.setLevel(level)
        return _logger

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(LabeledFormatter())
    logger.addHandler(handler)
    logger.propagate = False

    _logger = logger
    return logger


def get_logger() -> logging.Logger:
    if _logger is None:
        return setup_logging()
    return _logger


def reset_logging() -> None:
    """Réinitialise l'état global (tests)."""
    global _logger
    if _logger is not None:
        for handler in _logger.handlers[:]:
            _logger.removeHandler(handler)
        _logger.propagate = True
    _logger = None
