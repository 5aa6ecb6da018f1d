"""
Logging configuration for the send and receive processes.

stdout carries relayed program output, so every handler writes to stderr.
"""

import logging
import logging.config
from typing import Any, Dict


class RoleFilter(logging.Filter):
    """Stamp each record with the role of this process (send/receive)."""

    def __init__(self, role: str = "-"):
        super().__init__()
        self.role = role

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "role"):
            record.role = self.role
        return True


def get_logging_config(level: str = "INFO", role: str = "-") -> Dict[str, Any]:
    """Get logging configuration for the given level and process role."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "role_filter": {
                "()": RoleFilter,
                "role": role,
            }
        },
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - [%(role)s] %(message)s"
            }
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stderr",
                "filters": ["role_filter"],
            }
        },
        "loggers": {
            "cmdpipe": {
                "handlers": ["default"],
                "level": level,
                "propagate": False,
            },
        },
        "root": {
            "level": "WARNING",
            "handlers": ["default"]
        }
    }


def configure_logging(level: str = "INFO", role: str = "-") -> None:
    """Apply the logging configuration."""
    logging.config.dictConfig(get_logging_config(level, role))
