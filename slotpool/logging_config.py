"""
Logging setup for the SlotPool service.

One stdout handler serves both the application loggers and uvicorn.
The access log drops health check traffic so that orchestrator
health checks do not drown out session activity.
"""

import logging
import logging.config
from typing import Any, Dict, Tuple

# Paths polled by liveness and readiness checks
HEALTH_CHECK_PATHS: Tuple[str, ...] = ("/health", "/healthz")

# Loggers that write through the default handler
APP_LOGGERS: Tuple[str, ...] = ("slotpool", "uvicorn", "uvicorn.error")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class HealthCheckFilter(logging.Filter):
    """Drop uvicorn access records for GET requests to health check paths."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name != "uvicorn.access":
            return True
        # uvicorn passes (client, method, path, http_version, status)
        args = record.args
        if not isinstance(args, tuple) or len(args) != 5:
            return True
        method, path = args[1], str(args[2])
        return not (method == "GET" and path.split("?", 1)[0] in HEALTH_CHECK_PATHS)


def get_logging_config(level: str = "INFO") -> Dict[str, Any]:
    """
    Build a dictConfig mapping.

    Args:
        level: Level for the application and uvicorn loggers
    """
    level = level.upper()
    loggers = {
        name: {"handlers": ["default"], "level": level, "propagate": False}
        for name in APP_LOGGERS
    }
    loggers["uvicorn.access"] = {"handlers": ["access"], "level": level, "propagate": False}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"health_check_filter": {"()": HealthCheckFilter}},
        "formatters": {
            "default": {"format": LOG_FORMAT},
            "access": {"format": "%(message)s"},
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stdout",
            },
            "access": {
                "class": "logging.StreamHandler",
                "formatter": "access",
                "stream": "ext://sys.stdout",
                "filters": ["health_check_filter"],
            },
        },
        "loggers": loggers,
        "root": {"level": level, "handlers": ["default"]},
    }


def configure_logging(level: str = "INFO") -> None:
    """Apply the logging configuration process-wide."""
    logging.config.dictConfig(get_logging_config(level))
