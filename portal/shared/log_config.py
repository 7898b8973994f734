"""
Structured logging setup shared by every Lambda entry point.
"""

import logging

import structlog

from portal.shared.config import get_settings


def configure_logging() -> None:
    """Install the JSON structlog processor chain on top of stdlib logging."""
    settings = get_settings()
    logging.basicConfig(format="%(message)s", level=settings.log_level)
    logging.getLogger().setLevel(settings.log_level)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
