"""
Structured logging for the ECO widgets service.

Engine components log snake_case events through structlog; this module wires
the processor chain once at startup. Every record carries the service name
and version so selector and series events can be told apart from host logs
when both land in the same sink.
"""

import logging
import sys
from typing import Any, Optional

import structlog
from structlog.types import EventDict, Processor

from ecowidgets import __version__
from ecowidgets.config import Settings, get_settings

SERVICE_NAME = "ecowidgets"


def add_severity(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Mirror the level as an upper-case severity for log collectors."""
    event_dict["severity"] = method_name.upper()
    return event_dict


def add_service_info(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service", SERVICE_NAME)
    event_dict.setdefault("version", __version__)
    return event_dict


def _renderer(settings: Settings, log_format: str) -> Processor:
    # dev mode always renders for humans
    if log_format == "json" and not settings.dev_mode:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=not settings.testing)


def configure_logging(log_level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """
    Configure stdlib logging and the structlog processor chain.

    Args:
        log_level: Overrides LOG_LEVEL (debug, info, warning, error)
        log_format: Overrides LOG_FORMAT (json or console)
    """
    settings = get_settings()
    level_name = (log_level or settings.log_level).upper()

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level_name, logging.INFO),
    )

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        add_severity,
        add_service_info,
        structlog.processors.UnicodeDecoder(),
        _renderer(settings, log_format or settings.log_format),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__, **context: Any) -> Any:
    """
    Get a structlog logger, optionally bound to initial context.

    Example:
        >>> log = get_logger(__name__, component="selector_registry")
    """
    logger = structlog.get_logger(name)
    if context:
        return logger.bind(**context)
    return logger
