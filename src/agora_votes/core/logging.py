"""Logging configuration for the Agora voting service."""

from __future__ import annotations

from logging.config import dictConfig
from typing import Any

from agora_votes.core.settings import settings


def build_log_config(level: str) -> dict[str, Any]:
    """Return a dictConfig mapping routing everything to stdout at ``level``."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d - %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "default",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            "agora_votes": {
                "handlers": ["console"],
                "level": level,
                "propagate": False,
            },
        },
        "root": {
            "handlers": ["console"],
            "level": level,
        },
    }


def configure_logging(level: str | None = None) -> None:
    """Apply the service log configuration."""
    dictConfig(build_log_config(level or settings.effective_log_level))
