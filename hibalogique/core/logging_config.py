# hibalogique/core/logging_config.py
import logging
import sys
from typing import Optional

import structlog

from hibalogique.config import settings

APP_NAME = "hibalogique-quotes"


def _add_app_context(_, __, event_dict: dict) -> dict:
    event_dict.setdefault("app", APP_NAME)
    event_dict.setdefault("env", settings.app_env)
    return event_dict


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure structlog + standard logging.

    Logs go as JSON lines to stdout, each tagged with the app name and
    environment plus whatever is bound via bind_session (session_id).
    Level defaults to settings.log_level.
    """
    level = level or settings.log_level
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            _add_app_context,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def bind_session(session_id: str) -> None:
    """Tag every following log line of this context with the session id."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(session_id=session_id)


# Global logger, importable everywhere
logger = structlog.get_logger("hibalogique")
