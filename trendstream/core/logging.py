"""dictConfig logging shared by the ingestor and ranker processes.

Every process logs to stdout through a single ``console`` handler. Outside
production the handler renders plain lines tagged with the process name; in
production it emits one JSON object per record via python-json-logger so the
collector can index fields.
"""
import logging
import logging.config
import sys
from typing import Any, Dict, Optional

from .settings import Settings, get_settings

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers and the level they run at; None follows the app level
LIBRARY_LEVELS: Dict[str, Optional[str]] = {
    "uvicorn": "INFO",
    "uvicorn.access": "WARNING",
    "httpx": "WARNING",
    "httpcore": "WARNING",
    "tenacity": None,
}


def _formatters(service_name: Optional[str]) -> Dict[str, Dict[str, str]]:
    tag = f" [{service_name}]" if service_name else ""
    service_field = f" {service_name}" if service_name else ""
    return {
        "console": {
            "format": f"%(asctime)s{tag} [%(levelname)s] %(name)s: %(message)s",
            "datefmt": DATE_FORMAT,
        },
        "json": {
            "class": "pythonjsonlogger.jsonlogger.JsonFormatter",
            "format": f"%(asctime)s %(levelname)s{service_field} %(name)s %(process)d %(message)s",
            "datefmt": DATE_FORMAT,
        },
    }


def _logger(level: str) -> Dict[str, Any]:
    return {"level": level, "handlers": ["console"], "propagate": False}


def get_logging_config(service_name: Optional[str] = None, settings: Optional[Settings] = None) -> Dict[str, Any]:
    """
    Build the dictConfig payload for one process.

    Args:
        service_name: Process tag added to every line, e.g. ``ingestor``
        settings: Settings to read levels from; the cached ones by default

    Returns:
        A ``logging.config.dictConfig`` compatible dict
    """
    settings = settings or get_settings()
    level = settings.log_level

    loggers = {"trendstream": _logger(level)}
    for name, library_level in LIBRARY_LEVELS.items():
        loggers[name] = _logger(library_level or level)
    # Statement logging only when the engine echoes
    loggers["sqlalchemy.engine"] = _logger("INFO" if settings.database_echo else "WARNING")

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": _formatters(service_name),
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "json" if settings.environment == "production" else "console",
                "stream": sys.stdout,
            }
        },
        "loggers": loggers,
        "root": {"level": level, "handlers": ["console"]},
    }


def setup_logging(service_name: Optional[str] = None, settings: Optional[Settings] = None) -> None:
    """Install the logging configuration for ``service_name``."""
    logging.config.dictConfig(get_logging_config(service_name, settings))
    logging.captureWarnings(True)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
