"""
structlog setup for the salon recovery service.

Every event is logged by name with keyword context (platform, event_type,
message_id, ...). JSON lines in production, coloured console output with
``DEBUG=true``.
"""

import logging
import sys
from typing import Any
import structlog
from salon_recovery.config import config

# Platform API calls go through httpx, which logs every request at INFO.
QUIET_LOGGERS = ("httpx", "httpcore")


def configure_logging():
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    renderer = structlog.dev.ConsoleRenderer() if config.DEBUG else structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            # webhook_platform, bound by the webhook route
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = None) -> Any:
    """
    Usage:
        logger = get_logger(__name__)
        logger.info("webhook_received", platform="vagaro")
    """
    return structlog.get_logger(name)


def bind_webhook_context(platform: str) -> None:
    """Attach the webhook's platform to every log line of this request."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(webhook_platform=platform)


configure_logging()

logger = get_logger("salon_recovery")
