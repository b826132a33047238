"""
Structured Logging

Every storage decision and every write is logged as a structured event.
This provides:
1. A trace of which backend a session used and why
2. Debugging capability when an import or save fails
3. Machine-readable output (one JSON object per line)
"""

import logging
from typing import Optional

import structlog


_configured = False


def configure_logging(level: str = "INFO", environment: Optional[str] = None) -> None:
    """
    Configure structlog on top of the standard library logger.

    Safe to call more than once; only the first call installs handlers.
    The environment name, when given, is added to every later event.
    """
    global _configured
    if environment:
        structlog.contextvars.bind_contextvars(environment=environment)
    if _configured:
        return

    logging.basicConfig(format="%(message)s", level=level.upper())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _configured = True


def get_logger(name: Optional[str] = None):
    """Get a structlog logger bound to a module name."""
    return structlog.get_logger(name)
