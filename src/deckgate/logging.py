"""Logging configuration.

API server, worker and CLI share one dictConfig. Every handler carries the
request-context filter so ``%(request_id)s`` is always defined ("-" outside a
request).
"""

import logging.config
from typing import Any

from deckgate.config import settings

REQUEST_FILTER = {"()": "deckgate.api.middleware.RequestContextFilter"}

DEV_FORMAT = "%(levelname)-8s [%(request_id)s] %(name)s: %(message)s"
PROD_FORMAT = "%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s"

# Libraries that log every request or connection at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "aiosmtplib", "saq", "sqlalchemy.engine")


def _build_config(*, with_uvicorn: bool) -> dict[str, Any]:
    is_dev = settings.is_development
    config: dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"request_context": REQUEST_FILTER},
        "formatters": {
            "app": {"format": DEV_FORMAT if is_dev else PROD_FORMAT},
        },
        "handlers": {
            "app": {
                "class": "logging.StreamHandler",
                "formatter": "app",
                "filters": ["request_context"],
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {name: {"level": "WARNING"} for name in NOISY_LOGGERS},
        "root": {"handlers": ["app"], "level": settings.log_level},
    }

    if with_uvicorn:
        config["formatters"]["access"] = {
            "()": "uvicorn.logging.AccessFormatter",
            "fmt": '%(levelprefix)s [%(request_id)s] "%(request_line)s" %(status_code)s'
            if is_dev
            else '%(asctime)s %(levelprefix)s %(client_addr)s "%(request_line)s" %(status_code)s',
        }
        config["handlers"]["access"] = {
            "class": "logging.StreamHandler",
            "formatter": "access",
            "filters": ["request_context"],
            "stream": "ext://sys.stdout",
        }
        config["loggers"]["uvicorn.access"] = {
            "handlers": ["access"],
            "level": "INFO",
            "propagate": False,
        }
        config["loggers"]["uvicorn.error"] = {
            "handlers": ["app"],
            "level": "INFO",
            "propagate": False,
        }
    return config


def get_uvicorn_log_config() -> dict[str, Any]:
    """dictConfig handed to uvicorn by ``deckgate serve``."""
    return _build_config(with_uvicorn=True)


def setup_logging() -> None:
    """Configure logging for processes not started by uvicorn (worker, CLI)."""
    logging.config.dictConfig(_build_config(with_uvicorn=False))
