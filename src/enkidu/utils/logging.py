"""
Logging configuration for enkidu.

This module provides centralized logging setup with structured logging support
and consistent formatting across all components. Console output goes to stderr
so command results printed on stdout stay machine readable.
"""

import logging
import logging.config
from pathlib import Path

from pythonjsonlogger.json import JsonFormatter

PLAIN_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
JSON_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(name: str | None = None) -> logging.Logger:
    """Get the logger for a module.

    Module loggers carry no handlers of their own; records propagate to the
    ``enkidu`` logger configured by :func:`configure_root_logging`.

    Args:
        name: Logger name (defaults to this module)

    Returns:
        Logger instance
    """
    return logging.getLogger(name or __name__)


def configure_root_logging(
    level: str = "INFO",
    structured: bool = False,
    log_file: Path | None = None
) -> None:
    """Configure logging for the whole command invocation.

    Args:
        level: Logging level for the ``enkidu`` logger
        structured: Enable JSON structured logging
        log_file: Optional log file path
    """
    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": PLAIN_FORMAT,
                "datefmt": DATE_FORMAT
            },
            "structured": {
                "()": JsonFormatter,
                "fmt": JSON_FORMAT,
                "datefmt": DATE_FORMAT
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "structured" if structured else "standard",
                "stream": "ext://sys.stderr"
            }
        },
        "loggers": {
            "enkidu": {
                "level": level,
                "handlers": ["console"],
                "propagate": False
            }
        }
    }

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        config["handlers"]["file"] = {
            "class": "logging.FileHandler",
            "level": level,
            "formatter": "structured" if structured else "standard",
            "filename": str(log_file)
        }
        config["loggers"]["enkidu"]["handlers"].append("file")

    logging.config.dictConfig(config)


class LoggerMixin:
    """Mixin class to add logging capabilities to any class."""

    @property
    def logger(self) -> logging.Logger:
        """Get logger for this class."""
        return logging.getLogger(f"{self.__class__.__module__}.{self.__class__.__name__}")
