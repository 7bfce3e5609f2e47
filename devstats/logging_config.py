from logging.config import dictConfig
from typing import Any, Dict, Optional

from .config import Settings, get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Loggers that chatter about every upstream request
HTTP_LOGGERS = ("urllib3", "uvicorn.access")


def logging_dict(settings: Settings) -> Dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": {"format": LOG_FORMAT}},
        "handlers": {
            "stderr": {"class": "logging.StreamHandler", "formatter": "default"},
        },
        "loggers": {name: {"level": "DEBUG"} for name in HTTP_LOGGERS} if settings.debug_http else {},
        "root": {"handlers": ["stderr"], "level": settings.log_level.upper()},
    }


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Route devstats, urllib3 and uvicorn logs through one stderr handler."""
    dictConfig(logging_dict(settings or get_settings()))
