# core/logging/setup.py
import logging
import logging.config

from fastapi import FastAPI

from app.config.settings import Settings
from app.middleware.logging import LoggingMiddleware
from core.errors import InternalServerError

APP_LOGGER = "showroom_app"


def build_logging_config(settings: Settings) -> dict:
    """Build the dictConfig used by the service."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            },
        },
        "handlers": {
            "file": {
                "class": "logging.FileHandler",
                "filename": settings.LOG_FILE,
                "level": "DEBUG",
                "formatter": "default",
            },
            "console": {
                "class": "logging.StreamHandler",
                "level": settings.LOG_LEVEL,
                "formatter": "default",
            },
        },
        "loggers": {
            APP_LOGGER: {
                "level": "DEBUG",
                "handlers": ["file", "console"],
                "propagate": False,
            },
        },
        "root": {
            "level": settings.LOG_LEVEL,
            "handlers": ["console", "file"],
        },
    }


def setup_logging(app: FastAPI, settings: Settings) -> None:
    """Set up logging configuration and request logging for the application."""
    logger = logging.getLogger(APP_LOGGER)
    try:
        logging.config.dictConfig(build_logging_config(settings))
        app.add_middleware(LoggingMiddleware)
        logger.info("Logging setup completed")

    except ValueError as ve:
        logger.error(f"Invalid config: {str(ve)}", exc_info=True)
        raise InternalServerError(f"Invalid logging configuration: {str(ve)}")
    except FileNotFoundError as fnf:
        logger.error(f"File path error: {str(fnf)}", exc_info=True)
        raise InternalServerError(f"Log file path error: {str(fnf)}")
    except PermissionError as pe:
        logger.error(f"Permission denied: {str(pe)}", exc_info=True)
        raise InternalServerError(f"Permission denied: {str(pe)}")
